"""재고 실사 대조 및 작업 동기화 엔진"""
