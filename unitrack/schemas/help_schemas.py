from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import Field, field_validator

from unitrack.schemas.camel_base_model import ApiModel


class ContactUserType(str, Enum):
    STUDENT = "student"
    TEACHER = "teacher"
    ADMIN = "admin"


class ContactPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class FAQAuthor(ApiModel):
    id: Optional[str] = Field(default=None, alias="_id")
    name: Optional[str] = None


class FAQ(ApiModel):
    id: str = Field(..., alias="_id")
    question: str
    answer: str
    category: str
    is_active: bool = True
    display_order: int = 0
    tags: List[str] = Field(default_factory=list)
    created_by: Optional[FAQAuthor] = None
    view_count: int = 0
    last_updated: Optional[datetime] = None


class FAQCategory(ApiModel):
    category: str
    description: str = ""
    count: int = 0
    latest_update: Optional[datetime] = None


class SupportInfo(ApiModel):
    categories: Dict[str, str] = Field(default_factory=dict)
    priorities: Dict[str, str] = Field(default_factory=dict)
    guidelines: List[str] = Field(default_factory=list)
    contact_tips: List[str] = Field(default_factory=list)


class ContactRequest(ApiModel):
    name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)
    user_type: ContactUserType = ContactUserType.TEACHER
    subject: str = Field(..., min_length=1)
    category: str = "general"
    priority: ContactPriority = ContactPriority.MEDIUM
    message: str = Field(..., min_length=1)
    phone: Optional[str] = None

    @field_validator("email", mode="before")
    def normalize_email(cls, v: str) -> str:
        return str(v).strip().lower()


DEFAULT_FAQS: List[Dict] = [
    {
        "_id": "1",
        "question": "How do I mark attendance?",
        "answer": "To mark attendance, open the session and click the 'Mark Attendance' button. Make sure you're within the session radius.",
        "category": "attendance",
        "display_order": 1,
        "tags": ["attendance", "session", "mark"],
    },
    {
        "_id": "2",
        "question": "What should I do if I can't access the system?",
        "answer": "If you can't access the system, try clearing your app cache, check your internet connection, or contact technical support.",
        "category": "technical",
        "display_order": 2,
        "tags": ["technical", "access", "login", "troubleshooting"],
    },
    {
        "_id": "3",
        "question": "How do I generate attendance reports?",
        "answer": "Go to your course dashboard, select the session, and tap 'Download Report'. You can choose between detailed PDF or summary formats.",
        "category": "reports",
        "display_order": 3,
        "tags": ["reports", "pdf", "download", "attendance"],
    },
    {
        "_id": "4",
        "question": "How do I reset my password?",
        "answer": "Tap 'Forgot Password' on the login page, enter your email, and follow the instructions sent to your email.",
        "category": "security",
        "display_order": 4,
        "tags": ["password", "reset", "security", "login"],
    },
]

DEFAULT_CATEGORIES: List[Dict] = [
    {"category": "attendance", "description": "Attendance related questions", "count": 1},
    {"category": "technical", "description": "Technical support questions", "count": 1},
    {"category": "reports", "description": "Report generation and download", "count": 1},
    {"category": "security", "description": "Security and access questions", "count": 1},
]

DEFAULT_SUPPORT_INFO: Dict = {
    "categories": {
        "technical": "Technical issues and bugs",
        "attendance": "Attendance tracking problems",
        "security": "Security and access issues",
        "reports": "Report generation and downloads",
        "general": "General inquiries",
    },
    "priorities": {
        "low": "General questions, not urgent",
        "medium": "Important but not blocking work",
        "high": "Blocking work, needs attention",
        "urgent": "Critical issue, immediate help needed",
    },
    "guidelines": [
        "Provide detailed description of the issue",
        "Include screenshots if possible",
        "Mention the course code if relevant",
        "Check FAQ before contacting support",
        "Response time varies by priority level",
    ],
    "contact_tips": [
        "Use clear and concise language",
        "Provide steps to reproduce the issue",
        "Include device and app version info",
    ],
}
