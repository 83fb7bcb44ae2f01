"""
원장/저장소 예외 계층

    LedgerError
    +-- ValidationError            (400, 저장소 접근 전 거부)
    +-- NotFoundError
    |   +-- MaterialNotFoundError  (404)
    |   +-- RecordNotFoundError    (404)
    +-- PastDateLockedError        (409)
    +-- ConstraintViolationError   (409)
    |   +-- DuplicateRecordError   ((material_id, date) 중복 — 초기화 시 무해)
    |   +-- DuplicateMaterialError (카탈로그 id 중복)
    +-- StoreUnavailableError      (503, 재시도 가능)
        +-- SchemaDriftError       (자가 복구 후 재시도도 실패)

모든 클래스는 기계 판독용 code 클래스 속성을 가진다.
캐시 계층 오류는 이 계층으로 올라오지 않는다 (로그만 남김).
"""


class LedgerError(Exception):
    """원장 관련 오류의 기반 클래스"""

    code: str = "LEDGER_ERROR"
    status_code: int = 500


class ValidationError(LedgerError):
    """필수 필드 누락, 빈 배치 등 — 클라이언트 오류"""

    code: str = "VALIDATION_ERROR"
    status_code: int = 400

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class NotFoundError(LedgerError):
    code: str = "NOT_FOUND"
    status_code: int = 404


class MaterialNotFoundError(NotFoundError):
    code: str = "MATERIAL_NOT_FOUND"

    def __init__(self, material_id: str):
        self.material_id = material_id
        super().__init__(f"Material not found: {material_id}")


class RecordNotFoundError(NotFoundError):
    code: str = "RECORD_NOT_FOUND"

    def __init__(self, material_id: str, record_date):
        self.material_id = material_id
        self.record_date = record_date
        super().__init__(f"Inventory record not found: {material_id} @ {record_date}")


class PastDateLockedError(LedgerError):
    """지난 날짜의 레코드는 수정할 수 없다"""

    code: str = "PAST_DATE_LOCKED"
    status_code: int = 409

    def __init__(self, record_date, today):
        self.record_date = record_date
        self.today = today
        super().__init__(f"Records before {today} are closed (got {record_date})")


class ConstraintViolationError(LedgerError):
    code: str = "CONSTRAINT_VIOLATION"
    status_code: int = 409


class DuplicateRecordError(ConstraintViolationError):
    """(material_id, date) 유니크 제약 위반"""

    code: str = "DUPLICATE_RECORD"

    def __init__(self, material_id: str, record_date):
        self.material_id = material_id
        self.record_date = record_date
        super().__init__(f"Inventory record already exists: {material_id} @ {record_date}")


class DuplicateMaterialError(ConstraintViolationError):
    code: str = "DUPLICATE_MATERIAL"

    def __init__(self, material_id: str):
        self.material_id = material_id
        super().__init__(f"Material already exists: {material_id}")


class StoreUnavailableError(LedgerError):
    """저장소 연결 실패/타임아웃 — 엔진 내부에서 재시도하지 않는다"""

    code: str = "STORE_UNAVAILABLE"
    status_code: int = 503
    retryable: bool = True


class SchemaDriftError(StoreUnavailableError):
    code: str = "SCHEMA_DRIFT"

    def __init__(self, column: str, message: str):
        self.column = column
        super().__init__(f"Schema drift on column '{column}' persisted after self-heal: {message}")
