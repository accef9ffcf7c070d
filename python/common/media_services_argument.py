class MediaServicesArgument(object):
    def __init__(self, description, required=False, default=None, secret=False):
        # type: (str, bool, str, bool) -> None
        self.description = description
        self.required = required
        self.default = default
        self.secret = secret
