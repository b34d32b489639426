"""Navigator Config Meta information.
   Navigator Config reads application configuration records from a remote
   store, decrypting sealed payloads and caching the results.
"""
__title__ = 'navigator_config'
__description__ = (
   'Navigator Config reads encrypted application configuration '
   'from a remote store, with a bounded time-windowed cache.'
)
__version__ = '0.1.0'
__copyright__ = 'Copyright (c) 2023 Jesus Lara'
__author__ = 'Jesus Lara'
__author_email__ = 'jesuslarag@gmail.com'
__license__ = 'Apache-2.0'
__url__ = 'https://github.com/phenobarbital/navigator-config'
