"""
유틸리티 패키지

로깅, 예외 처리, 메트릭 등의 공통 유틸리티를 제공합니다.
"""
