"""In-process event pipeline: the bounded bus and its single consumer."""
