"""Navigator Broker Meta information.
   Navigator Broker keeps third-party credentials bound to a server-side
   session and performs authenticated calls on behalf of the caller.
"""
__title__ = 'navigator_broker'
__description__ = (
   'Navigator Broker keeps third-party credentials in a server-side '
   'session and proxies authenticated calls on behalf of the caller.'
)
__version__ = '0.1.0'
__copyright__ = 'Copyright (c) 2023 Jesus Lara'
__author__ = 'Jesus Lara'
__author_email__ = 'jesuslarag@gmail.com'
__license__ = 'Apache-2.0'
__url__ = 'https://github.com/phenobarbital/navigator-broker'
