"""Asterisk manager interface access.

Lines are driven through AMI actions sent to Asterisk's built-in HTTP
server (``/rawman``); nothing in this package touches media.
"""
