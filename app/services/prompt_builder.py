import re
from types import MappingProxyType
from typing import Optional, Sequence, Tuple

from app.core.logging import get_logger
from app.models.schemas import ContextBundle, QueryType
from app.services.context_assembler import render_context
from app.services.query_classifier import is_code_question, is_math_question, is_simple_question

logger = get_logger(__name__)

ASSISTANT_NAME = "CourseConnect AI"


def _keyword_pattern(keywords: Sequence[str], whole_words: Sequence[str] = ()) -> re.Pattern:
    # Keywords match at word starts ("math" covers "mathematics"); short words
    # like "ai" or "art" must be whole words so "explain" and "start" do not fire
    alternatives = [re.escape(keyword) for keyword in keywords]
    alternatives += [re.escape(word) + r"\b" for word in whole_words]
    return re.compile(r"\b(?:" + "|".join(alternatives) + r")", re.IGNORECASE)


# Ordered (pattern, subject) rules, first match wins
SUBJECT_RULES: Tuple[Tuple[re.Pattern, str], ...] = (
    (_keyword_pattern(["math", "algebra", "calculus", "geometry", "statistics", "probability",
                       "equation", "solve", "calculate", "formula", "derivative", "integral"]), "mathematics"),
    (_keyword_pattern(["physics", "chemistry", "biology", "science", "experiment", "molecule",
                       "atom", "cell", "organism", "force", "energy", "reaction"]), "science"),
    (_keyword_pattern(["programming", "code", "algorithm", "software", "computer",
                       "machine learning", "data structure", "python", "javascript", "database"], ["ai"]), "computer_science"),
    (_keyword_pattern(["history", "revolution", "ancient", "medieval", "world war",
                       "civilization", "empire", "historical"], ["war", "wars"]), "history"),
    (_keyword_pattern(["literature", "poetry", "novel", "author", "writing", "essay", "grammar",
                       "language", "book", "story"]), "literature"),
    (_keyword_pattern(["economics", "business", "finance", "market", "economy", "investment",
                       "stock", "money", "profit", "revenue"]), "economics"),
    (_keyword_pattern(["psychology", "behavior", "mental", "cognitive", "social", "sociology",
                       "anthropology", "human behavior"]), "psychology"),
    (_keyword_pattern(["philosophy", "ethics", "morality", "existential", "metaphysics", "logic",
                       "reasoning", "philosopher"]), "philosophy"),
    (_keyword_pattern(["painting", "drawing", "design", "artist", "creative",
                       "aesthetic", "visual", "artwork"], ["art", "arts"]), "art"),
    (_keyword_pattern(["medicine", "health", "medical", "disease", "treatment", "anatomy",
                       "physiology", "doctor", "patient"]), "medicine"),
    (_keyword_pattern(["law", "legal", "court", "constitution", "politics", "government",
                       "democracy", "justice", "rights"]), "law"),
)

COMPLEXITY_RULES: Tuple[Tuple[re.Pattern, str], ...] = (
    (_keyword_pattern(["advanced", "expert", "graduate", "phd", "research", "thesis", "complex",
                       "sophisticated", "detailed analysis"]), "advanced"),
    (_keyword_pattern(["explain", "how does", "what is", "describe", "analyze", "compare",
                       "contrast", "discuss"]), "intermediate"),
    (_keyword_pattern(["what", "who", "when", "where", "define", "simple", "basic",
                       "introduction"]), "basic"),
)

SUBJECT_INSTRUCTIONS = MappingProxyType({
    "mathematics": "You're great at math! Provide accurate answers using LaTeX formatting. "
                   "Use $ for inline math and $$ for display equations.",
    "science": "You know science well! Explain scientific concepts in simple terms with good examples.",
    "computer_science": "You're tech-savvy! Explain programming and tech concepts clearly, "
                        "with code examples when helpful.",
    "history": "You know history! Share interesting facts and context in an engaging way.",
    "literature": "You love books and writing! Provide thoughtful insights about literature and writing.",
    "economics": "You understand economics! Explain economic concepts with real-world examples.",
    "psychology": "You understand human behavior! Share insights about psychology in relatable ways.",
    "philosophy": "You think deeply! Explain philosophical concepts clearly and thoughtfully.",
    "art": "You appreciate creativity! Discuss art and design with enthusiasm and insight.",
    "medicine": "You know health and medicine! Provide helpful health information with appropriate disclaimers.",
    "law": "You understand legal concepts! Explain law clearly with appropriate disclaimers.",
    "general": "You're knowledgeable about many topics! Share your knowledge in a helpful, friendly way.",
})

COMPLEXITY_INSTRUCTIONS = MappingProxyType({
    "basic": "Keep it simple but informative. Explain things clearly with good examples, "
             "like you're helping someone understand something for the first time.",
    "intermediate": "Provide a solid explanation with good detail and examples. Think of explaining "
                    "something to someone who has some background knowledge but wants to learn more.",
    "advanced": "Go into more depth and detail, but still keep it conversational and engaging. "
                "Include nuanced information and deeper insights.",
})

QUERY_TYPE_GUIDANCE = MappingProxyType({
    QueryType.SHORT_ANSWER: "Keep the answer short: a few sentences at most.",
    QueryType.REASONING: "Show the reasoning step by step before giving the result.",
    QueryType.ESSAY: "Give a well-structured explanation with a short introduction, the main points and a wrap-up.",
    QueryType.CODE: "Answer with code first and keep the prose brief.",
})

SIMPLE_THINK_BLOCK = """<think>
Step 1: Analyze what the user is asking
Step 2: Recall relevant information
Step 3: Plan a clear, conversational response
Step 4: Structure for engagement and clarity
</think>"""

MATH_THINK_BLOCK = """<think>
Step 1: Analyze the mathematical problem
Step 2: Recall the appropriate formulas and methods
Step 3: Plan the solution steps
Step 4: Execute the calculations
</think>"""

GENERAL_THINK_BLOCK = """<think>
Step 1: Analyze the question and identify what the user is asking
Step 2: Recall relevant knowledge and concepts
Step 3: Plan how to explain it clearly and conversationally
Step 4: Consider examples and analogies to make it relatable
Step 5: Structure the response for maximum clarity and engagement
</think>"""

CODE_RULES = """CRITICAL: THIS IS A CODING QUESTION. ALL CODE MUST BE IN MARKDOWN CODE BLOCKS.

Answer as concisely as possible. Only generate the code necessary to solve the problem.

MANDATORY CODING FORMAT:
- ALWAYS use fenced markdown code blocks with triple backticks
- ALWAYS put the language name right after the opening backticks
- NEVER output code outside a code block
- NEVER mix different languages in one code block

REQUIRED FORMAT EXAMPLES:

For JavaScript:
```javascript
function helloWorld() {
    console.log("Hello World");
}
helloWorld();
```

For Python:
```python
def hello_world():
    print("Hello World")

hello_world()
```

For HTML:
```html
<!DOCTYPE html>
<html>
<body>
    <h1>Hello World</h1>
</body>
</html>
```

RULES:
1. Include the language tag (javascript, html, python, etc.) on every block
2. Make code complete and runnable
3. Add comments to explain key parts
4. If you need both HTML and JavaScript, show them in separate code blocks
5. Never output incomplete or broken code

Finish with a brief explanation of what the code does."""


def _first_match(rules: Tuple[Tuple[re.Pattern, str], ...], text: str, default: str) -> str:
    for pattern, label in rules:
        if pattern.search(text):
            return label
    return default


def detect_subject(question: str) -> str:
    return _first_match(SUBJECT_RULES, question, "general")


def detect_complexity(question: str) -> str:
    return _first_match(COMPLEXITY_RULES, question, "intermediate")


def build_simple_prompt(question: str) -> str:
    """Compact prompt for arithmetic, greetings and basic definitions"""
    if is_math_question(question):
        return (
            f'You are {ASSISTANT_NAME}. Answer this math question: "{question}"\n\n'
            "IMPORTANT: First, put your step-by-step thinking process in <think> tags.\n\n"
            f"{MATH_THINK_BLOCK}\n\n"
            "Then provide the final answer using LaTeX formatting:\n"
            "- Use $ for inline math: $x^2$\n"
            "- Use $$ for display equations: $$\\frac{d}{dx}x^2 = 2x$$\n"
            "- Box the final answer with \\boxed{}\n"
            "- Be extremely concise, just the solution"
        )

    return (
        f'You are {ASSISTANT_NAME}. Answer this question: "{question}"\n\n'
        "IMPORTANT: First, put your step-by-step thinking process in <think> tags.\n\n"
        f"{SIMPLE_THINK_BLOCK}\n\n"
        "Then give a natural, conversational answer. Be helpful and clear, like you're talking to a friend. "
        "Keep it informative but not too long. Do NOT use LaTeX formatting unless it's a math calculation."
    )


def build_code_prompt(question: str, context_block: str) -> str:
    context = f"\n{context_block}\n" if context_block else ""
    return f'You are {ASSISTANT_NAME}, a coding expert. Answer this coding question: "{question}"\n{context}\n{CODE_RULES}'


def build_general_prompt(question: str, query_type: QueryType, context_block: str,
                         subject: Optional[str] = None, complexity: Optional[str] = None) -> str:
    subject = subject or detect_subject(question)
    complexity = complexity or detect_complexity(question)
    context = f"\n{context_block}\n" if context_block else ""

    return (
        f"You are {ASSISTANT_NAME}, a friendly and knowledgeable study assistant.\n\n"
        "IMPORTANT: First, put your COMPLETE step-by-step thinking process in <think> tags.\n\n"
        f"{GENERAL_THINK_BLOCK}\n\n"
        f'Then answer this question naturally and conversationally: "{question}"\n'
        f"{context}\n"
        f"{SUBJECT_INSTRUCTIONS[subject]}\n\n"
        f"{COMPLEXITY_INSTRUCTIONS[complexity]}\n\n"
        f"{QUERY_TYPE_GUIDANCE[query_type]}\n\n"
        "INSTRUCTIONS:\n"
        "- Write like you're talking to a friend who wants to learn something\n"
        "- Use natural language and examples to make it interesting\n"
        "- Refer to the course details above when they are relevant\n"
        "- Use LaTeX only for math; not for science concepts or general explanations"
    )


def build(question: str, query_type: QueryType, bundle: Optional[ContextBundle] = None) -> str:
    """Pick a template for the question and fill it in"""
    bundle = bundle or ContextBundle()

    if query_type == QueryType.CODE or is_code_question(question):
        logger.info("Using code prompt")
        return build_code_prompt(question, render_context(bundle))

    if is_simple_question(question):
        logger.info("Using simple prompt")
        return build_simple_prompt(question)

    subject = detect_subject(question)
    complexity = detect_complexity(question)
    logger.info(f"Using general prompt, subject: {subject}, complexity: {complexity}")
    return build_general_prompt(question, query_type, render_context(bundle), subject, complexity)
