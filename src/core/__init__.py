"""Core domain package for scrubscope.

Core contains the scrub pipeline (admission, worker, backoff, flags and
digests) without any Telegram, HTTP or storage-specific code, keeping the
business logic portable.
"""
