# backend/services/prompts.py
from typing import List, Optional, Sequence

from schemas.session import UserContext

HINTS_PROMPT = """You are an interview coach assistant. Provide brief, concise hints to help answer the question.
Format:
- 3-5 key points maximum
- Each point should be one sentence
- If it's a coding question, include a short code example
- Be direct and helpful"""

FULL_PROMPT = """You are an interview coach assistant. Provide a comprehensive, detailed answer to help during an interview.
Format:
- Explain the concept thoroughly
- Include examples
- If it's a coding question, include complete code examples with explanations
- Structure: Introduction -> Explanation -> Example -> Key Takeaways"""

CODE_BLOCK_INSTRUCTION = (
    "Include working code examples with syntax highlighting indicators (use markdown code blocks)."
)

INTERVIEWER_PROMPT = "You are an experienced interviewer and interview coach. Follow the instructions exactly."

CODING_KEYWORDS = (
    "code", "implement", "function", "method", "class", "algorithm",
    "data structure", "write a program", "debug", "fix", "refactor",
    "optimize", "python", "javascript", "java", "c++", "ruby", "go",
    "rust", "typescript", "react", "node", "api", "database", "sql",
    "array", "loop", "recursion", "sort", "search", "tree", "graph",
    "hash", "stack", "queue",
)

# NOTE: templates use double braces to escape literal JSON in str.format()
QUESTION_TEMPLATES = {
    "behavioral": "Generate a {difficulty} behavioral interview question{role}.\n"
                  "Use the STAR method format.{context}\n"
                  "Return only the question, no additional text.",
    "technical": "Generate a {difficulty} technical interview question{role}.\n"
                 "Focus on concepts, architecture, and best practices.{context}\n"
                 "Return only the question, no additional text.",
    "coding": "Generate a {difficulty} coding interview question{role}.\n"
              "Include problem description and constraints.{context}\n"
              "Return only the question, no additional text.",
    "system-design": "Generate a {difficulty} system design interview question{role}.\n"
                     "Focus on scalability, architecture, and trade-offs.{context}\n"
                     "Return only the question, no additional text.",
}

FEEDBACK_TEMPLATE = """You are an interview coach. Analyze the following mock interview answers.
{context}
Questions and Answers:
{pairs}

Provide:
1. Overall score (0-100)
2. Overall performance summary (2-3 sentences)
3. Top 3 strengths
4. Top 3 areas for improvement
5. For each answer:
   - Score (0-100)
   - Specific feedback
   - 2-3 concrete suggestions for improvement

Format as JSON matching this structure:
{{
  "overallScore": number,
  "summary": "string",
  "strengths": ["string", "string", "string"],
  "improvements": ["string", "string", "string"],
  "answerFeedback": [
    {{
      "question": "string",
      "answer": "string",
      "score": number,
      "feedback": "string",
      "suggestions": ["string", "string"]
    }}
  ]
}}"""


def is_coding_question(question: str) -> bool:
    lower = question.lower()
    return any(kw in lower for kw in CODING_KEYWORDS)


def build_system_prompt(mode: str, context: Optional[UserContext] = None) -> str:
    base = HINTS_PROMPT if mode == "hints" else FULL_PROMPT
    parts = context.lines() if context else []
    if not parts:
        return base
    return (
        base
        + "\n\nContext about the user:\n"
        + "\n".join(parts)
        + "\n\nPlease tailor your answer to be relevant for this specific role and context."
    )


def _inline_context(context: Optional[UserContext]) -> str:
    parts: List[str] = context.lines(include_notes=False) if context else []
    if not parts:
        return ""
    return "\nContext:\n" + "\n".join(parts) + "\n"


def build_question_prompt(difficulty: str, qtype: str, context: Optional[UserContext] = None) -> str:
    role = ""
    if context and context.enabled and context.job_title:
        role = f" for a {context.job_title} position"
        if context.field:
            role += f" in {context.field}"
    return QUESTION_TEMPLATES[qtype].format(
        difficulty=difficulty,
        role=role,
        context=_inline_context(context),
    )


def build_feedback_prompt(
    questions: Sequence[str],
    answers: Sequence[str],
    context: Optional[UserContext] = None,
) -> str:
    pairs = "\n\n".join(
        f"Q{i}: {q}\nA{i}: {a}" for i, (q, a) in enumerate(zip(questions, answers), start=1)
    )
    return FEEDBACK_TEMPLATE.format(context=_inline_context(context), pairs=pairs)
