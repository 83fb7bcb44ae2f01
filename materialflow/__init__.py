"""
MaterialFlow — 물료 일일 재고 원장 서비스
- ledger: 전일 잔량 이월 원장 (저장소 어댑터, 엔진, 업무 달력)
- cache: 인메모리 + Redis 2계층 캐시와 무효화
- services / api: FastAPI 계층
"""

__version__ = "1.0.0"
