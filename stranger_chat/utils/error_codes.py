class ErrorCodes:
    ERR_VALIDATION = 100
    ERR_TRANSPORT = 101
    ERR_PROTOCOL_DECODE = 201
    ERR_NOT_CHATTING = 301
    ERR_ILLEGAL_TRANSITION = 302
    ERR_INTERNAL = 500


class ChatError(Exception):
    code = ErrorCodes.ERR_INTERNAL

    def __init__(self, message, code=None):
        if code is not None:
            self.code = code
        self.message = message
        super().__init__(f"[{self.code}] {message}")


class ValidationError(ChatError):
    """Empty nickname or message. Reported to the caller, state is untouched."""
    code = ErrorCodes.ERR_VALIDATION


class TransportError(ChatError):
    code = ErrorCodes.ERR_TRANSPORT


class ProtocolDecodeError(ChatError):
    """Inbound frame that does not match any known message shape."""
    code = ErrorCodes.ERR_PROTOCOL_DECODE


class SendWhileNotChattingError(ChatError):
    code = ErrorCodes.ERR_NOT_CHATTING


class IllegalTransitionError(ChatError):
    code = ErrorCodes.ERR_ILLEGAL_TRANSITION
