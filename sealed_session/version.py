"""Sealed Session Meta information.
   Sealed Session keeps user-specific data inside an encrypted,
   authenticated cookie held by the client.
"""
__title__ = 'sealed_session'
__description__ = (
   'Sealed Session stores user-specific session data into an '
   'encrypted and authenticated client-side cookie.'
)
__version__ = '0.1.0'
__copyright__ = 'Copyright (c) 2023 Jesus Lara'
__author__ = 'Jesus Lara'
__author_email__ = 'jesuslarag@gmail.com'
__license__ = 'Apache-2.0'
__url__ = 'https://github.com/phenobarbital/sealed-session'
