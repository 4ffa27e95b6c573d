"""M365 Assessment Platform.

Registers client organizations, runs security posture assessments against
each tenant's Microsoft Graph data, and tracks scores over time.
"""

__version__ = "0.1.0"
