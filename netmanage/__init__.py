"""Network-management building blocks: SNMP sessions, a trap/inform receiver, BER encoding and SSH server scaffolding."""

__version__ = "2.0.0"