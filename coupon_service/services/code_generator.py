"""
쿠폰 코드 생성기

영문 대소문자와 숫자(62자)로 14자리 코드를 만들고 4자리마다 '-'로 구분합니다.
예: aB3d-Ef9H-1jKl-Mn
"""

import random
import string
from typing import Optional


class CouponCodeGenerator:
    """쿠폰 코드 생성기"""

    CODE_LENGTH = 14
    GROUP_SIZE = 4
    SEPARATOR = "-"
    CHARACTERS = string.ascii_lowercase + string.ascii_uppercase + string.digits

    def __init__(self, rng: Optional[random.Random] = None):
        """
        Args:
            rng: 난수 생성기. 기본값은 암호학적으로 안전한 SystemRandom이며,
                테스트에서는 시드를 고정한 random.Random을 주입합니다.
        """
        self.rng = rng or random.SystemRandom()

    def generate(self) -> str:
        """
        쿠폰 코드 생성

        저장소 중복 여부는 확인하지 않으므로, 새 코드가 필요한 발급 경로에서
        충돌 시 재생성해야 합니다.

        Returns:
            XXXX-XXXX-XXXX-XX 형식의 코드
        """
        chars = [self.rng.choice(self.CHARACTERS) for _ in range(self.CODE_LENGTH)]
        groups = [
            "".join(chars[i : i + self.GROUP_SIZE])
            for i in range(0, self.CODE_LENGTH, self.GROUP_SIZE)
        ]
        return self.SEPARATOR.join(groups)
