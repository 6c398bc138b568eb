"""
쿠폰 서비스

쿠폰 발급, 사용 검증, 보상 처리, 선착순 프로모션 수령을 담당합니다.
"""

__version__ = "1.0.0"
