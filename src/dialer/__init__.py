"""Nine-line AMI dialer: command protocol, line state and session handling.

Lines live on a remote Asterisk server and are manipulated through manager
actions only; there is no media path in this package.
"""
