"""Offpass Meta information.
   Offpass keeps named credential vaults encrypted under a master password.
"""
__title__ = 'offpass'
__description__ = (
   'Offpass keeps named credential vaults encrypted '
   'under a single master password.'
)
__version__ = '0.3.0'
__copyright__ = 'Copyright (c) 2026 Offpass Developers'
__author__ = 'Offpass Developers'
__author_email__ = ''
__license__ = 'Apache-2.0'
__url__ = ''
