class GeovcError(Exception):
    pass


class ConfigurationError(GeovcError):
    """Bad user input or repository setup, detected before touching a remote."""


class InvalidRefSpec(ConfigurationError):
    def __init__(self, refspec, reason):
        super().__init__(f'invalid refspec {refspec!r}: {reason}')
        self.refspec = refspec
        self.reason = reason


class NoUpstreamConfigured(ConfigurationError):
    def __init__(self, branch):
        if branch is None:
            message = 'HEAD is detached and no refspec was given'
        else:
            message = f'branch {branch!r} has no upstream configured'
        super().__init__(message)
        self.branch = branch


class LocalRefNotFound(ConfigurationError):
    def __init__(self, ref):
        super().__init__(f'local ref {ref!r} does not exist')
        self.ref = ref


class UnknownRemote(ConfigurationError):
    def __init__(self, remote):
        super().__init__(f'{remote!r} is neither a configured remote nor a repository path')
        self.remote = remote


class ObjectNotFound(GeovcError):
    def __init__(self, oid):
        super().__init__(f'object {oid} not found')
        self.oid = oid


class TransportError(GeovcError):
    pass


class PushCancelled(GeovcError):
    pass


class RefLocked(GeovcError):
    def __init__(self, ref):
        super().__init__(f'{ref} is locked by another writer')
        self.ref = ref
