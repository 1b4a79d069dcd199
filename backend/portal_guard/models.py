from typing import List, Literal, Optional, Union

from pydantic import BaseModel, EmailStr, Field


class ChallengeResponse(BaseModel):
    challenge_id: str
    question: str
    difficulty: int


class ChallengeAnswer(BaseModel):
    challenge_id: str
    answer: Union[str, int]


class ChallengeVerdict(BaseModel):
    valid: bool


class GateResponse(BaseModel):
    blocked: bool
    risk_score: int
    remaining_seconds: Optional[int] = None


class CitizenMessage(BaseModel):
    full_name: str = Field(min_length=2, max_length=120)
    email: EmailStr
    phone: Optional[str] = Field(default=None, max_length=32)
    message_type: Literal["suggestion", "complaint", "inquiry"]
    subject: str = Field(min_length=3, max_length=200)
    content: str = Field(min_length=10, max_length=5000)
    captcha_id: str
    captcha_answer: Union[str, int]
    # honeypots: left empty by humans, see portal_guard.security.honeypot
    website: Optional[str] = None
    url: Optional[str] = None
    fax_number: Optional[str] = None


class MessageReceipt(BaseModel):
    status: str = "received"
    reference: str
    message: str


class SecurityReport(BaseModel):
    total_ips: int
    blocked_ips: int
    high_risk_ips: int
    recent_violations: int
    top_threats: List[str]
    outstanding_challenges: int


class ProfileSnapshot(BaseModel):
    ip: str
    request_count: int
    failed_attempts: int
    security_violations: int
    risk_score: int
    risk_level: str
    is_blocked: bool
    block_expires: Optional[float] = None
    remaining_seconds: int
    first_seen: float
    last_violation: Optional[float] = None
    suspicious_patterns: List[str]
