# hostping/utils/errors.py
class PingerError(Exception):
    """기본 pinger 예외 베이스"""

    pass


class ConfigError(PingerError):
    """설정 관련 오류"""

    pass


class NoAddressError(ConfigError):
    """대상 주소 누락"""

    def __init__(self, message: str = "no address"):
        super().__init__(message)


class InvalidHTTPMethodError(ConfigError):
    def __init__(self, method: str):
        self.method = method
        super().__init__(f"invalid method {method}")


class StateError(PingerError):
    """connect/disconnect 상태 오용"""

    pass


class AlreadyConnectedError(StateError):
    def __init__(self, message: str = "already connected"):
        super().__init__(message)


class NotConnectedError(StateError):
    def __init__(self, message: str = "not connected"):
        super().__init__(message)


class ProtocolError(PingerError):
    """응답 메시지 해석 오류"""

    pass


class ReplyTooShortError(ProtocolError):
    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(f"reply too short (expected {expected}B; actual {actual}B)")


class MessageParseError(ProtocolError):
    pass


class NetworkError(PingerError):
    """네트워크/권한/소켓 관련 오류"""

    pass


class ReceiverClosedError(NetworkError):
    """수신 태스크 종료 후 더 이상 응답이 오지 않음"""

    def __init__(self, message: str = "receiver closed"):
        super().__init__(message)


class PingCancelled(PingerError):
    """cancel scope 취소"""

    def __init__(self, message: str = "cancelled"):
        super().__init__(message)


class ForcedError(PingerError):
    def __init__(self, message: str = "forced failure by error pinger"):
        super().__init__(message)
