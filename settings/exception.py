"""
설정 관련 예외 클래스 정의
"""


class SettingsError(Exception):
    """설정 기본 예외"""
    pass


class ConfigurationError(SettingsError):
    """설정 검증 실패 (여러 오류를 한 번에 보고)"""
    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        self.message = "Configuration validation failed:\n" + "\n".join(self.errors)
        super().__init__(self.message)
