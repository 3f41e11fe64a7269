"""
TMS Engine

Ticket scoring and workflow core with:
- Questionnaire-driven priority scoring (red flags short-circuit to P0)
- Effort checklist with collaboration bonus
- Role/ownership authorization tables
- Status state machine with points distribution on completion
- Human-readable change narration plus structured audit trail
"""

__version__ = "0.1.0"
