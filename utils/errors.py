# utils/errors.py


class ReportError(Exception):
    """Base class for everything the report pipeline raises on purpose."""


class MissingInputError(ReportError):
    def __init__(self, pattern, directory):
        self.pattern = pattern
        self.directory = directory
        super().__init__(f"No input file matches '{pattern}' in {directory}")


class MalformedRecordError(ReportError):
    def __init__(self, source, detail):
        self.source = str(source)
        self.detail = detail
        super().__init__(f"Cannot read {self.source}: {detail}")


class OutputWriteError(ReportError):
    def __init__(self, path, detail):
        self.path = str(path)
        self.detail = detail
        super().__init__(f"Could not write {self.path}: {detail}")


class MissingCredentialsError(ReportError):
    def __init__(self, names):
        self.names = tuple(names)
        super().__init__(f"Set {' and '.join(self.names)} to fetch playlists from the Spotify API")
