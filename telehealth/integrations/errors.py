class IntegrationError(Exception):
	"""A vendor call failed in a way the caller must surface."""

	def __init__(self, vendor: str, message: str, status_code: int | None = None):
		super().__init__(f"{vendor}: {message}")
		self.vendor = vendor
		self.message = message
		self.status_code = status_code
