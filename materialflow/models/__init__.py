"""
SQLAlchemy ORM 모델 패키지
- 모든 모델을 여기서 import하여 Base.metadata에 등록한다.
"""

from materialflow.models.material import Material
from materialflow.models.inventory import DailyInventoryRecord
from materialflow.models.setting import Setting
from materialflow.models.audit_log import AuditLog

__all__ = [
    "Material",
    "DailyInventoryRecord",
    "Setting",
    "AuditLog",
]
