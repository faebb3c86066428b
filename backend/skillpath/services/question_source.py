"""
Quiz Question Source

Produces skill-assessment questions for a learning domain. Questions are
generated by the OpenAI service; when that fails or returns something that
is not a usable quiz, a shuffled selection from static question banks is
served instead.
"""

import logging
import os
import random
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from skillpath.services.openai_service import openai_service, OpenAIServiceError

logger = logging.getLogger(__name__)

QUIZ_TIMEOUT_SECONDS = float(os.getenv("QUIZ_TIMEOUT_SECONDS", "20"))
QUIZ_TEMPERATURE = 0.9

DEFAULT_QUESTION_COUNT = 10
FALLBACK_QUESTION_COUNT = 5
OPTIONS_PER_QUESTION = 4

DOMAINS = [
    "Web Development",
    "Data Science",
    "Mobile Development",
    "Machine Learning",
    "Cloud Computing",
    "Cybersecurity",
    "DevOps",
    "UI/UX Design",
    "IoT (Internet of Things)",
    "Space Technology",
    "Hardware",
]


@dataclass
class QuizSet:
    domain: str
    questions: List[Dict[str, Any]] = field(default_factory=list)
    source: str = "generated"  # "generated" or "fallback"


# =============================================================================
# Static banks
# =============================================================================

# {domain} is substituted at selection time
FUNDAMENTALS_BANK = [
    {
        "question": "What is the primary purpose of {domain}?",
        "options": [
            "To build software applications",
            "To manage data and information",
            "To solve specific technical problems",
            "All of the above",
        ],
        "correctAnswer": 3,
        "difficulty": "beginner",
    },
    {
        "question": "Which skill is most important for {domain}?",
        "options": [
            "Problem-solving abilities",
            "Communication skills",
            "Technical knowledge",
            "All are equally important",
        ],
        "correctAnswer": 3,
        "difficulty": "beginner",
    },
    {
        "question": "{domain} is best described as:",
        "options": [
            "A theoretical field",
            "A practical discipline",
            "Both theoretical and practical",
            "Neither theoretical nor practical",
        ],
        "correctAnswer": 2,
        "difficulty": "beginner",
    },
    {
        "question": "What is a common tool used in {domain}?",
        "options": [
            "Specialized software",
            "Programming languages",
            "Development frameworks",
            "Varies by specific application",
        ],
        "correctAnswer": 3,
        "difficulty": "intermediate",
    },
    {
        "question": "How would you rate the learning curve for {domain}?",
        "options": [
            "Very easy",
            "Moderate",
            "Challenging but manageable",
            "Very difficult",
        ],
        "correctAnswer": 2,
        "difficulty": "intermediate",
    },
]

PRACTICE_BANK = [
    {
        "question": "What is the most reliable way to retain new {domain} concepts?",
        "options": [
            "Re-reading notes several times",
            "Applying them in small hands-on projects",
            "Watching videos at double speed",
            "Memorizing definitions",
        ],
        "correctAnswer": 1,
        "difficulty": "beginner",
    },
    {
        "question": "When a {domain} project fails in an unexpected way, what should you do first?",
        "options": [
            "Start the project over",
            "Reproduce the problem and isolate its cause",
            "Change several things at once until it works",
            "Ignore it if the failure is rare",
        ],
        "correctAnswer": 1,
        "difficulty": "intermediate",
    },
    {
        "question": "Which practice best keeps {domain} work maintainable as it grows?",
        "options": [
            "Keeping everything in one large file",
            "Avoiding documentation to save time",
            "Version control with small, reviewed changes",
            "Copying working code between projects",
        ],
        "correctAnswer": 2,
        "difficulty": "intermediate",
    },
    {
        "question": "How should you evaluate a new {domain} tool before adopting it?",
        "options": [
            "Adopt it if it is popular on social media",
            "Prototype with it against your real requirements",
            "Wait until every competitor uses it",
            "Read only the marketing page",
        ],
        "correctAnswer": 1,
        "difficulty": "advanced",
    },
    {
        "question": "What distinguishes an expert in {domain} from an intermediate practitioner?",
        "options": [
            "Knowing more tool names",
            "Understanding trade-offs and when an approach does not apply",
            "Working faster without testing",
            "Never asking for help",
        ],
        "correctAnswer": 1,
        "difficulty": "advanced",
    },
]

DOMAIN_BANKS: Dict[str, List[Dict[str, Any]]] = {
    "Web Development": [
        {
            "question": "Which HTML element is used for the largest heading?",
            "options": ["<head>", "<h6>", "<h1>", "<header>"],
            "correctAnswer": 2,
            "difficulty": "beginner",
        },
        {
            "question": "Which CSS property controls the space between an element's border and its content?",
            "options": ["margin", "padding", "spacing", "gap"],
            "correctAnswer": 1,
            "difficulty": "beginner",
        },
        {
            "question": "What does the JavaScript expression `typeof null` return?",
            "options": ["\"null\"", "\"undefined\"", "\"object\"", "\"number\""],
            "correctAnswer": 2,
            "difficulty": "intermediate",
        },
        {
            "question": "Which HTTP status code indicates that a resource was created?",
            "options": ["200", "201", "204", "301"],
            "correctAnswer": 1,
            "difficulty": "intermediate",
        },
        {
            "question": "What problem does a Content Security Policy header primarily mitigate?",
            "options": [
                "Slow page loads",
                "Cross-site scripting",
                "Database deadlocks",
                "DNS spoofing",
            ],
            "correctAnswer": 1,
            "difficulty": "advanced",
        },
    ],
    "Data Science": [
        {
            "question": "Which measure of central tendency is least affected by outliers?",
            "options": ["Mean", "Median", "Range", "Variance"],
            "correctAnswer": 1,
            "difficulty": "beginner",
        },
        {
            "question": "In pandas, which method returns the first rows of a DataFrame?",
            "options": ["first()", "top()", "head()", "peek()"],
            "correctAnswer": 2,
            "difficulty": "beginner",
        },
        {
            "question": "A p-value of 0.03 with alpha 0.05 means you should:",
            "options": [
                "Fail to reject the null hypothesis",
                "Reject the null hypothesis",
                "Accept the alternative with certainty",
                "Increase the sample size",
            ],
            "correctAnswer": 1,
            "difficulty": "intermediate",
        },
        {
            "question": "Which plot is best for showing the distribution of a single numeric variable?",
            "options": ["Pie chart", "Histogram", "Line chart", "Scatter plot"],
            "correctAnswer": 1,
            "difficulty": "intermediate",
        },
        {
            "question": "What does Simpson's paradox describe?",
            "options": [
                "A trend that reverses when groups are combined",
                "Correlation always implying causation",
                "Sampling without replacement",
                "Overfitting on small data",
            ],
            "correctAnswer": 0,
            "difficulty": "advanced",
        },
    ],
    "Machine Learning": [
        {
            "question": "Which task is an example of supervised learning?",
            "options": [
                "Clustering customers",
                "Predicting house prices from labeled sales",
                "Reducing dimensions with PCA",
                "Finding association rules",
            ],
            "correctAnswer": 1,
            "difficulty": "beginner",
        },
        {
            "question": "What is overfitting?",
            "options": [
                "A model that performs well on training data but poorly on new data",
                "A model that is too simple for the data",
                "Training for too few epochs",
                "Using too little memory",
            ],
            "correctAnswer": 0,
            "difficulty": "beginner",
        },
        {
            "question": "Which metric is most informative for a heavily imbalanced binary classifier?",
            "options": ["Accuracy", "F1 score", "Mean squared error", "R-squared"],
            "correctAnswer": 1,
            "difficulty": "intermediate",
        },
        {
            "question": "What does L2 regularization add to the loss function?",
            "options": [
                "The sum of absolute weights",
                "The sum of squared weights",
                "The number of non-zero weights",
                "The learning rate",
            ],
            "correctAnswer": 1,
            "difficulty": "intermediate",
        },
        {
            "question": "Why does the transformer architecture use positional encodings?",
            "options": [
                "To reduce the vocabulary size",
                "Because self-attention alone is order-invariant",
                "To normalize layer outputs",
                "To replace the softmax",
            ],
            "correctAnswer": 1,
            "difficulty": "advanced",
        },
    ],
    "Cybersecurity": [
        {
            "question": "What does the 'C' in the CIA triad stand for?",
            "options": ["Control", "Confidentiality", "Compliance", "Cryptography"],
            "correctAnswer": 1,
            "difficulty": "beginner",
        },
        {
            "question": "Phishing is primarily which type of attack?",
            "options": ["Social engineering", "Denial of service", "Buffer overflow", "Brute force"],
            "correctAnswer": 0,
            "difficulty": "beginner",
        },
        {
            "question": "Which practice prevents SQL injection most effectively?",
            "options": [
                "Escaping quotes by hand",
                "Parameterized queries",
                "Hiding error messages",
                "Using HTTPS",
            ],
            "correctAnswer": 1,
            "difficulty": "intermediate",
        },
        {
            "question": "Why are passwords stored with a slow, salted hash?",
            "options": [
                "To make them reversible for support staff",
                "To make offline guessing expensive",
                "To save storage space",
                "To speed up logins",
            ],
            "correctAnswer": 1,
            "difficulty": "intermediate",
        },
        {
            "question": "What does forward secrecy guarantee in TLS?",
            "options": [
                "Certificates never expire",
                "Past sessions stay protected if the server's long-term key leaks",
                "Clients are always authenticated",
                "Traffic cannot be blocked",
            ],
            "correctAnswer": 1,
            "difficulty": "advanced",
        },
    ],
    "Cloud Computing": [
        {
            "question": "Which cloud service model provides virtual machines you manage yourself?",
            "options": ["SaaS", "PaaS", "IaaS", "FaaS"],
            "correctAnswer": 2,
            "difficulty": "beginner",
        },
        {
            "question": "What is an availability zone?",
            "options": [
                "A pricing tier",
                "An isolated data center location within a region",
                "A type of storage bucket",
                "A user permission group",
            ],
            "correctAnswer": 1,
            "difficulty": "beginner",
        },
        {
            "question": "What does horizontal scaling mean?",
            "options": [
                "Adding more CPU to one server",
                "Adding more instances behind a load balancer",
                "Moving to a different region",
                "Compressing stored data",
            ],
            "correctAnswer": 1,
            "difficulty": "intermediate",
        },
        {
            "question": "Which principle should guide IAM permissions?",
            "options": ["Least privilege", "Shared accounts", "Root access for automation", "Open by default"],
            "correctAnswer": 0,
            "difficulty": "intermediate",
        },
        {
            "question": "What is the main trade-off of eventual consistency in distributed storage?",
            "options": [
                "Reads may briefly return stale data",
                "Writes are always rejected",
                "Data cannot be replicated",
                "Storage costs double",
            ],
            "correctAnswer": 0,
            "difficulty": "advanced",
        },
    ],
    "DevOps": [
        {
            "question": "What does CI stand for in CI/CD?",
            "options": [
                "Continuous Integration",
                "Code Inspection",
                "Container Isolation",
                "Centralized Infrastructure",
            ],
            "correctAnswer": 0,
            "difficulty": "beginner",
        },
        {
            "question": "Which file typically describes how to build a Docker image?",
            "options": ["docker.yml", "Dockerfile", "compose.lock", "image.json"],
            "correctAnswer": 1,
            "difficulty": "beginner",
        },
        {
            "question": "What is infrastructure as code?",
            "options": [
                "Writing application code on servers",
                "Managing infrastructure through versioned definition files",
                "Compiling code into hardware",
                "Monitoring servers with scripts",
            ],
            "correctAnswer": 1,
            "difficulty": "intermediate",
        },
        {
            "question": "In Kubernetes, what keeps a desired number of pod replicas running?",
            "options": ["Service", "ConfigMap", "Deployment", "Ingress"],
            "correctAnswer": 2,
            "difficulty": "intermediate",
        },
        {
            "question": "What is the purpose of a canary release?",
            "options": [
                "Deploy to all users at once",
                "Expose a new version to a small share of traffic first",
                "Roll back databases",
                "Test only on developer machines",
            ],
            "correctAnswer": 1,
            "difficulty": "advanced",
        },
    ],
}


# =============================================================================
# Validation
# =============================================================================

def validate_question(raw: Any) -> Optional[Dict[str, Any]]:
    """
    Return a cleaned question dict, or None if the item is not usable.
    """
    if not isinstance(raw, dict):
        return None

    text = raw.get("question")
    options = raw.get("options")
    correct = raw.get("correctAnswer")

    if not isinstance(text, str) or not text.strip():
        return None
    if not isinstance(options, list) or len(options) != OPTIONS_PER_QUESTION:
        return None
    if not all(isinstance(o, str) and o.strip() for o in options):
        return None
    if isinstance(correct, bool) or not isinstance(correct, int):
        return None
    if not 0 <= correct < len(options):
        return None

    question = {
        "question": text.strip(),
        "options": [o.strip() for o in options],
        "correctAnswer": correct,
    }
    if isinstance(raw.get("difficulty"), str):
        question["difficulty"] = raw["difficulty"].lower()
    return question


def parse_generated_quiz(data: Any) -> List[Dict[str, Any]]:
    """
    Extract valid questions from a generated payload.

    Raises:
        ValueError: If the payload has no usable questions
    """
    if not isinstance(data, dict):
        raise ValueError("Quiz payload is not an object")

    raw_questions = data.get("questions")
    if not isinstance(raw_questions, list) or not raw_questions:
        raise ValueError("Quiz payload has no questions")

    questions = [q for q in (validate_question(item) for item in raw_questions) if q]
    if not questions:
        raise ValueError("Quiz payload has no well-formed questions")

    dropped = len(raw_questions) - len(questions)
    if dropped:
        logger.info(f"Dropped {dropped} malformed generated questions")
    return questions


# =============================================================================
# Generation
# =============================================================================

def tier_split(count: int) -> Dict[str, int]:
    """3/4/3 beginner/intermediate/advanced for 10, proportional otherwise."""
    beginner = round(count * 0.3)
    advanced = round(count * 0.3)
    return {
        "beginner": beginner,
        "intermediate": count - beginner - advanced,
        "advanced": advanced,
    }


def build_quiz_prompt(domain: str, count: int, nonce: str) -> str:
    split = tier_split(count)
    first_intermediate = split["beginner"] + 1
    first_advanced = split["beginner"] + split["intermediate"] + 1
    return f"""Generate a skill assessment quiz for {domain}.
Assessment id: {nonce} (create a fresh set of questions for this id; do not reuse common textbook examples).

Create {count} multiple choice questions that progressively test knowledge from beginner to advanced level:
- Fundamental concepts (questions 1-{split['beginner']}), difficulty "beginner"
- Intermediate topics (questions {first_intermediate}-{first_advanced - 1}), difficulty "intermediate"
- Advanced techniques (questions {first_advanced}-{count}), difficulty "advanced"

Each question has exactly 4 options and one correct answer given as the 0-based index of the option.

Return ONLY valid JSON in this exact format:
{{
  "questions": [
    {{
      "question": "Question text here?",
      "options": ["Option A", "Option B", "Option C", "Option D"],
      "correctAnswer": 0,
      "difficulty": "beginner"
    }}
  ]
}}"""


def get_fallback_quiz(
    domain: str,
    count: int = FALLBACK_QUESTION_COUNT,
    rng: Optional[random.Random] = None,
) -> List[Dict[str, Any]]:
    """
    Select questions from the static banks.

    The domain bank (if any) and the two generic banks are concatenated,
    shuffled with a uniform permutation, and the first ``count`` kept.
    """
    rng = rng or random.Random()

    pool = []
    for template in DOMAIN_BANKS.get(domain, []) + FUNDAMENTALS_BANK + PRACTICE_BANK:
        question = dict(template)
        question["question"] = template["question"].format(domain=domain)
        question["options"] = list(template["options"])
        pool.append(question)

    # random.shuffle is Fisher-Yates
    rng.shuffle(pool)
    return pool[:count]


def generate_quiz(
    domain: str,
    count: int = DEFAULT_QUESTION_COUNT,
    rng: Optional[random.Random] = None,
) -> QuizSet:
    """
    Produce a quiz for a domain, falling back to the static banks on any
    generation or validation failure.
    """
    nonce = uuid.uuid4().hex
    try:
        data = openai_service.complete_json(
            system_prompt=(
                "You are a skill assessment expert. Generate accurate, "
                "well-structured quizzes in valid JSON format only."
            ),
            prompt=build_quiz_prompt(domain, count, nonce),
            timeout=QUIZ_TIMEOUT_SECONDS,
            temperature=QUIZ_TEMPERATURE,
        )
        questions = parse_generated_quiz(data)
    except (OpenAIServiceError, ValueError) as e:
        logger.warning(f"Quiz generation for {domain!r} failed, using fallback bank: {e}")
        return QuizSet(domain=domain, questions=get_fallback_quiz(domain, rng=rng), source="fallback")

    return QuizSet(domain=domain, questions=questions[:count], source="generated")
