class RelayError(Exception):
    """ Base class for every error raised by streamrelay """


class ConfigError(RelayError, ValueError):
    """ Missing or invalid configuration """


class AuthError(RelayError):
    """ A token exchange or token refresh failed """


class ChannelSetupError(RelayError):
    """ A chat, pubsub or webhook channel could not connect or subscribe """
    def __init__(self, channel, message, errors=None):
        super().__init__(f"[{channel}] {message}")
        self.channel = channel
        self.errors = list(errors or [])


class PlatformLookupError(RelayError, LookupError):
    """ A secondary user/channel/game lookup against the Helix API failed """
