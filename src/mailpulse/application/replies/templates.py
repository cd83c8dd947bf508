"""
Template-based reply suggestions.

Deterministic fallback used whenever no LLM is configured or the LLM call
fails. Templates are picked by keywords in the incoming body.
"""

from __future__ import annotations

from string import Template

INTERVIEW_KEYWORDS = ("interview", "technical round", "resume", "shortlisted")
MEETING_KEYWORDS = ("meeting", "schedule", "call", "discuss")
INTEREST_KEYWORDS = ("interested", "opportunity", "position")

INTERVIEW = Template("""Thank you for considering my application!

I'm very excited about this opportunity and would be happy to discuss how I can contribute to your team.

$context

Please feel free to book a convenient time for the interview using this link: $meeting_link

Looking forward to speaking with you!

Best regards""")

MEETING = Template("""Thank you for reaching out!

I'd be delighted to schedule a meeting to discuss this opportunity in detail.

You can book a time that works best for you here: $meeting_link

Looking forward to our conversation!

Best regards""")

INTEREST = Template("""Thank you for your email!

$context

I'm very interested in learning more about this opportunity. Please feel free to schedule a time to connect: $meeting_link

Best regards""")

GENERIC = Template("""Thank you for your message.

$context

I'm interested in discussing this further. You can schedule a convenient time here: $meeting_link

Looking forward to connecting!

Best regards""")


class TemplateReplySynthesizer:
    """ReplySynthesizer that never calls out and never fails."""

    def __init__(self, meeting_link: str = "") -> None:
        self.meeting_link = meeting_link

    def pick(self, body: str) -> Template:
        lowered = (body or "").lower()
        if any(k in lowered for k in INTERVIEW_KEYWORDS):
            return INTERVIEW
        if any(k in lowered for k in MEETING_KEYWORDS):
            return MEETING
        if any(k in lowered for k in INTEREST_KEYWORDS):
            return INTEREST
        return GENERIC

    def synthesize(self, body: str, context: str) -> str:
        template = self.pick(body)
        return template.safe_substitute(context=context.strip(), meeting_link=self.meeting_link).strip()
