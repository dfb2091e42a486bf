"""ADO to GitHub Migration Tool

Plans Azure DevOps to GitHub repository migrations and renders them into
PowerShell scripts that drive GitHub's asynchronous migration jobs.
"""

__version__ = '0.1.0'
__author__ = 'ADO Migration Team'
__email__ = 'team@example.com'

from .cli import main

__all__ = ['main']
