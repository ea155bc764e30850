"""Open E2EE Meta information.
   Open E2EE provides client-side envelope encryption for user data.
"""
__title__ = 'open_e2ee'
__description__ = (
   'Client-side end-to-end envelope encryption: per-item symmetric keys '
   'wrapped under a passphrase-protected user key pair.'
)
__version__ = '0.3.0'
__copyright__ = 'Copyright (c) 2023 Jesus Lara'
__author__ = 'Jesus Lara'
__author_email__ = 'jesuslarag@gmail.com'
__license__ = 'Apache-2.0'
__url__ = 'https://github.com/phenobarbital/open-e2ee'
