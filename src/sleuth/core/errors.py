class SleuthError(Exception):
    pass


class DataSourceError(SleuthError):
    pass


class RateLimitError(DataSourceError):
    pass


class SeedFetchError(DataSourceError):
    """The seed address could not be fetched, so there is nothing to trace."""

    def __init__(self, address: str, cause: str) -> None:
        super().__init__(f"Unable to fetch history for seed {address}: {cause}")
        self.address = address
        self.cause = cause
