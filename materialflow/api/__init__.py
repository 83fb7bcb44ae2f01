"""
FastAPI 라우터
"""
