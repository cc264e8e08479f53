"""
Case Access Service - Access Control for Legal Cases
====================================================

Decides who may see and act on a legal case:
1. Clients own the cases they create
2. Lawyers reach a case only through an explicit grant
3. Lawyers ask for grants; the owner or an administrator reviews

Administrators have access to every case.
"""

__version__ = "1.0.0"
