import secrets


class CodeGenerator:
    """Генерирует числовые коды фиксированной длины без ведущих нулей."""

    def __init__(self, length: int = 6) -> None:
        if length < 1:
            raise ValueError("code length must be positive")
        self.length = length
        self._low = 10 ** (length - 1)
        self._span = 10 ** length - self._low

    def generate(self) -> str:
        # Равномерно из [10^(N-1), 10^N - 1]
        return str(self._low + secrets.randbelow(self._span))
