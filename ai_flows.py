"""
AI-assisted features backed by Google Gemini.

Every flow builds a prompt, asks the model for JSON and validates the
answer against a pydantic model. The model is only ever asked to suggest:
nothing here writes to the database, routes decide what to keep.

Any failure (no API key, SDK error, malformed or invalid output) surfaces
as ``AIServiceError`` so routes can show a friendly message.
"""

import datetime
import json
from typing import List, Optional

import google.generativeai as genai
import structlog
from flask import current_app
from pydantic import BaseModel, Field, ValidationError, field_validator

from finance import CATEGORIES, normalize_category

log = structlog.get_logger(__name__)

DEFAULT_MODEL = "gemini-1.5-flash"


class AIServiceError(Exception):
    """Raised when an AI flow cannot produce a usable answer."""


# =============================================================================
# OUTPUT SCHEMAS
# =============================================================================

class CategoryResult(BaseModel):
    category: str

    @field_validator("category")
    @classmethod
    def match_known_category(cls, v):
        return normalize_category(v)


class ExtractedTransaction(BaseModel):
    date: datetime.date
    merchant: str = Field(min_length=1)
    amount: float
    category: str = "Other"

    @field_validator("merchant")
    @classmethod
    def strip_merchant(cls, v):
        return v.strip()

    @field_validator("category")
    @classmethod
    def match_known_category(cls, v):
        return normalize_category(v)


class ExtractionResult(BaseModel):
    transactions: List[ExtractedTransaction] = Field(default_factory=list)


class FinancialHealth(BaseModel):
    score: float = Field(ge=0, le=100)
    good_points: List[str] = Field(default_factory=list)
    areas_for_improvement: List[str] = Field(default_factory=list)


class SuggestedStock(BaseModel):
    ticker: str
    company: str
    price: Optional[float] = None
    reason: str

    @field_validator("ticker")
    @classmethod
    def upper_ticker(cls, v):
        return v.strip().upper()


class InvestmentAdvice(BaseModel):
    advice: str
    suggested_stocks: List[SuggestedStock] = Field(default_factory=list)


class GoalAllocation(BaseModel):
    goal_id: int
    percentage: float = Field(ge=0)


class AllocationPlan(BaseModel):
    allocations: List[GoalAllocation] = Field(default_factory=list)


class HelpAnswer(BaseModel):
    answer: str


# =============================================================================
# CLIENT
# =============================================================================

def _extract_json(text):
    text = (text or "").strip()
    start = text.find("{")
    end = text.rfind("}") + 1
    if start < 0 or end <= start:
        raise AIServiceError("The AI response did not contain JSON.")
    try:
        return json.loads(text[start:end])
    except json.JSONDecodeError as exc:
        raise AIServiceError("The AI response was not valid JSON.") from exc


class GeminiClient:
    """Thin wrapper around a Gemini model running in JSON output mode."""

    def __init__(self, api_key, model_name=DEFAULT_MODEL, temperature=0.2):
        genai.configure(api_key=api_key)
        self._model = genai.GenerativeModel(
            model_name=model_name,
            generation_config={
                "temperature": temperature,
                "response_mime_type": "application/json",
            }
        )

    def generate(self, parts, schema):
        try:
            response = self._model.generate_content(parts)
            text = response.text
        except Exception as exc:
            log.error("ai_call_failed", schema=schema.__name__, error=str(exc))
            raise AIServiceError("The AI service is unavailable right now.") from exc

        data = _extract_json(text)
        try:
            return schema.model_validate(data)
        except ValidationError as exc:
            log.warning("ai_output_invalid", schema=schema.__name__, errors=exc.error_count())
            raise AIServiceError("The AI returned an unexpected answer.") from exc


def get_client():
    client = current_app.extensions.get("gemini")
    if client is None:
        api_key = current_app.config.get("GEMINI_API_KEY")
        if not api_key:
            raise AIServiceError("AI features are not configured.")
        client = GeminiClient(api_key, current_app.config.get("GEMINI_MODEL") or DEFAULT_MODEL)
        current_app.extensions["gemini"] = client
    return client


# =============================================================================
# FLOWS
# =============================================================================

def categorize_transaction(description, client=None):
    client = client or get_client()
    prompt = f"""You categorize transactions for FinTrack, a personal finance app for college students.

Transaction description: {description}

Choose exactly one category from: {', '.join(CATEGORIES)}.

Respond with ONLY a JSON object in this exact format:
{{"category": "Food"}}"""
    return client.generate(prompt, CategoryResult).category


def extract_transactions_from_document(data, mime_type, client=None):
    client = client or get_client()
    prompt = f"""You are an expert at parsing financial documents like bank statements, credit card statements, and digital wallet reports (like Google Pay or Paytm), which can be in CSV, PDF, or even image format.

Meticulously analyze the attached document and extract all individual transactions.

For each transaction determine:
1. date: the exact date of the transaction, formatted as YYYY-MM-DD.
2. merchant: the name of the merchant or a concise description.
3. amount: expenses as POSITIVE numbers and income as NEGATIVE numbers.
4. category: one of {', '.join(CATEGORIES)}.

Respond with ONLY a JSON object in this exact format:
{{"transactions": [{{"date": "2024-01-31", "merchant": "Campus Cafe", "amount": 7.5, "category": "Food"}}]}}"""
    result = client.generate([prompt, {"mime_type": mime_type, "data": data}], ExtractionResult)
    log.info("document_extracted", mime_type=mime_type, count=len(result.transactions))
    return result.transactions


def get_financial_health(income, spending, goal_progress, client=None):
    client = client or get_client()
    prompt = f"""You are a financial advisor for college students. Analyze the following financial data and provide a financial health score and actionable feedback.

Keep your feedback concise, encouraging, and relevant to a student's lifestyle.

Data:
- Monthly Income: ${income:.2f}
- Monthly Spending: ${spending:.2f}
- Savings Goal Progress: {goal_progress:.1f}%

Generate a financial health score from 0 to 100, where 100 is excellent. Consider the savings rate (income vs. spending) and goal progress.
List a few things they are doing well and a few areas to improve, framed as positive, actionable steps.

Respond with ONLY a JSON object in this exact format:
{{"score": 72, "good_points": ["..."], "areas_for_improvement": ["..."]}}"""
    return client.generate(prompt, FinancialHealth)


def get_stock_price(ticker):
    """Deterministic placeholder quote between $10 and $209."""
    return float((sum(ord(c) for c in ticker) * 31) % 200 + 10)


def get_investment_advice(savings, client=None):
    client = client or get_client()
    prompt = f"""You are a financial advisor specializing in investment advice for college students with limited budgets.

The user has saved ${savings:.2f}.

Your advice should:
1. Be encouraging and acknowledge their savings effort.
2. Explain the concept of investing in simple terms.
3. Suggest a small, manageable amount to start with.
4. Suggest 2-3 specific, well-known stocks that are relatable to a student, each with a one-sentence reason why it might suit a beginner.
5. Include a disclaimer that this is not financial advice and that they should do their own research.

Respond with ONLY a JSON object in this exact format:
{{"advice": "...", "suggested_stocks": [{{"ticker": "AAPL", "company": "Apple Inc.", "reason": "..."}}]}}"""
    advice = client.generate(prompt, InvestmentAdvice)
    for stock in advice.suggested_stocks:
        stock.price = get_stock_price(stock.ticker)
    return advice


def _rescale(allocations, goal_ids):
    by_goal = {goal_id: 0.0 for goal_id in goal_ids}
    for allocation in allocations:
        if allocation.goal_id in by_goal:
            by_goal[allocation.goal_id] += allocation.percentage

    total = sum(by_goal.values())
    if not by_goal:
        return {}
    if total <= 0:
        share = round(100.0 / len(by_goal), 1)
        scaled = {goal_id: share for goal_id in by_goal}
    else:
        scaled = {goal_id: round(pct / total * 100.0, 1) for goal_id, pct in by_goal.items()}

    # rounding drift goes to the largest share
    drift = round(100.0 - round(sum(scaled.values()), 1), 1)
    if drift:
        largest = max(scaled, key=scaled.get)
        scaled[largest] = round(scaled[largest] + drift, 1)
    return scaled


def get_smart_goal_allocations(goals, total_monthly_savings, client=None):
    """Suggested allocation percentage per goal id, summing to 100."""
    client = client or get_client()
    goal_lines = "\n".join(
        f"- Goal: {g['name']} (ID: {g['id']})\n"
        f"  - Target: ${g['target_amount']:.2f}\n"
        f"  - Saved so far: ${g['current_amount']:.2f}"
        for g in goals
    )
    prompt = f"""You are a financial advisor for college students. Create a smart savings allocation plan.

The user has a total of ${total_monthly_savings:.2f} to save this month.

Here are their goals:
{goal_lines}

Suggest a percentage allocation for each goal. The total allocation must sum up to exactly 100%.

Strategy:
1. Prioritize finishing smaller, more achievable goals first to build momentum (the "snowball method").
2. Ensure that larger, long-term goals still receive some funding, even if it's a smaller percentage.
3. A goal that is almost complete might get a higher allocation to finish it off.

Respond with ONLY a JSON object in this exact format:
{{"allocations": [{{"goal_id": 1, "percentage": 60}}]}}"""
    plan = client.generate(prompt, AllocationPlan)
    return _rescale(plan.allocations, [g['id'] for g in goals])


def answer_help_question(question, client=None):
    client = client or get_client()
    prompt = f"""You are a friendly and helpful support agent for FinTrack, a personal finance app for college students.

Answer the user's question clearly and concisely.

User's Question: {question}

Respond with ONLY a JSON object in this exact format:
{{"answer": "..."}}"""
    return client.generate(prompt, HelpAnswer).answer
