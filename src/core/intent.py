"""
Regex heuristics over message text: a domain badge for assistant replies and
quick-reply suggestions for the input draft. Pure functions, no UI state.
"""
import re
from enum import Enum


class Domain(str, Enum):
    CODE = 'code'
    BUSINESS = 'business'
    MATH = 'math'
    GENERAL = 'general'


class SuggestionCategory(str, Enum):
    DEFAULT = 'default'
    CODE = 'code'
    DATA = 'data'
    FINANCE = 'finance'
    WRITING = 'writing'
    SCIENCE = 'science'
    GENERAL = 'general'


_DOMAIN_RULES = [
    (Domain.CODE, re.compile(r"(code|function|import|const |class |return |=>)")),
    (Domain.BUSINESS, re.compile(r"(business|strategy|market|finance|roi|plan)")),
    (Domain.MATH, re.compile(r"(calculate|math|equation|physics|\d+[+\-*/])")),
]

_SUGGESTION_RULES = [
    (SuggestionCategory.CODE, re.compile(r"(code|react|js|ts|function|hook|component)")),
    (SuggestionCategory.DATA, re.compile(r"(python|data|pandas|ai|ml)")),
    (SuggestionCategory.FINANCE, re.compile(r"(biz|money|finance|market|stock)")),
    (SuggestionCategory.WRITING, re.compile(r"(write|edit|email|blog|post)")),
    (SuggestionCategory.SCIENCE, re.compile(r"(science|physic|math|calc)")),
]

SUGGESTIONS: dict[SuggestionCategory, list[str]] = {
    SuggestionCategory.DEFAULT: [
        "Explain quantum computing",
        "Write a React hook for fetching data",
        "Business strategy for a SaaS startup",
        "Analyze the plot of Inception",
    ],
    SuggestionCategory.CODE: [
        "Write a custom hook", "Optimize React render", "Explain this code", "Debug TypeScript error",
    ],
    SuggestionCategory.DATA: [
        "Analyze this dataset", "Python script for automation", "Explain Neural Networks", "Pandas DataFrame help",
    ],
    SuggestionCategory.FINANCE: [
        "Market analysis", "ROI calculation", "Business model canvas", "Investment strategies",
    ],
    SuggestionCategory.WRITING: [
        "Draft a professional email", "Write a blog post", "Edit for clarity", "Creative story intro",
    ],
    SuggestionCategory.SCIENCE: [
        "Explain Quantum Mechanics", "Solve this equation", "Calculus help", "Scientific method",
    ],
    SuggestionCategory.GENERAL: [
        "Tell me a fun fact", "Explain complex topic", "Write some code", "Help me plan",
    ],
}


def classify_domain(text: str) -> Domain:
    lower = text.lower()
    for domain, pattern in _DOMAIN_RULES:
        if pattern.search(lower):
            return domain
    return Domain.GENERAL


def classify_suggestions(draft: str) -> SuggestionCategory:
    """First matching rule wins; an empty draft gets the default starters."""
    lower = draft.lower()
    if not lower:
        return SuggestionCategory.DEFAULT
    for category, pattern in _SUGGESTION_RULES:
        if pattern.search(lower):
            return category
    return SuggestionCategory.GENERAL


def smart_suggestions(draft: str) -> list[str]:
    return list(SUGGESTIONS[classify_suggestions(draft)])
