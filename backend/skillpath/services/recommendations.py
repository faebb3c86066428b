"""
Course Recommendation Service

Given a domain and an assessed skill level, asks the OpenAI service for a
list of courses that favors free material, keeps only courses whose URL
points at a specific course page, and falls back to a curated list when
too few generated courses survive.

The curated list is plain data maintained by hand; every URL in it links to
a concrete course or tutorial page, never a platform homepage.
"""

import logging
import os
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse, parse_qs

from skillpath.services.openai_service import openai_service, OpenAIServiceError
from skillpath.services.scoring import SkillLevel

logger = logging.getLogger(__name__)

COURSE_TIMEOUT_SECONDS = float(os.getenv("COURSE_TIMEOUT_SECONDS", "20"))
COURSE_TEMPERATURE = 0.8

REQUESTED_COURSE_COUNT = 9
MIN_VALID_COURSES = 6
MAX_FALLBACK_COURSES = 9

DEFAULT_DOMAIN = "Web Development"


@dataclass
class Recommendation:
    domain: str
    skill_level: str
    courses: List[Dict[str, Any]] = field(default_factory=list)
    source: str = "generated"  # "generated" or "curated"


# =============================================================================
# URL validation
# =============================================================================

# Path segments that name a listing or section rather than a course
GENERIC_SEGMENTS = {
    "all", "browse", "catalog", "catalogue", "categories", "category",
    "course", "courses", "docs", "explore", "free", "home", "index.html",
    "learn", "learning", "library", "path", "paths", "programs", "projects",
    "results", "search", "specializations", "subject", "subjects",
    "topic", "topics", "training", "tutorial", "tutorials",
}

LANGUAGE_CODES = {
    "ar", "de", "en", "es", "fr", "hi", "it", "ja", "ko", "nl",
    "pl", "pt", "ru", "tr", "zh",
}
REGION_LOCALE = re.compile(r"^[a-z]{2}[-_][a-z]{2,4}$")

YOUTUBE_HOSTS = {"youtube.com", "www.youtube.com", "m.youtube.com"}


def _is_locale(segment: str) -> bool:
    segment = segment.lower()
    return segment in LANGUAGE_CODES or bool(REGION_LOCALE.match(segment))


def is_specific_course_url(url: Any) -> bool:
    """
    True if ``url`` points at a specific course or video page.

    Accepts e.g. ``https://www.coursera.org/learn/some-course`` and
    ``https://www.youtube.com/watch?v=abc``; rejects bare domains such as
    ``https://www.coursera.org`` and listing pages such as ``/courses``.
    """
    if not isinstance(url, str) or not url.strip():
        return False

    try:
        parsed = urlparse(url.strip())
        host = (parsed.hostname or "").lower()
    except ValueError:
        # unbalanced IPv6 brackets and similar
        return False
    if parsed.scheme not in ("http", "https"):
        return False

    if "." not in host:
        return False

    segments = [s for s in parsed.path.split("/") if s]
    query = parse_qs(parsed.query)

    if host == "youtu.be":
        return len(segments) == 1
    if host in YOUTUBE_HOSTS:
        if segments == ["watch"]:
            return bool(query.get("v", [""])[0])
        if segments == ["playlist"]:
            return bool(query.get("list", [""])[0])
        return len(segments) == 2 and segments[0] in ("embed", "shorts", "live")

    specific = [
        s for s in segments
        if s.lower() not in GENERIC_SEGMENTS and not _is_locale(s)
    ]
    return bool(specific)


# =============================================================================
# Curated fallback
# =============================================================================

TITLE_TEMPLATES = {
    SkillLevel.BEGINNER.value: "Introduction to {topic}",
    SkillLevel.INTERMEDIATE.value: "{topic} in Practice",
    SkillLevel.ADVANCED.value: "Advanced {topic}",
}

LEVEL_BLURBS = {
    SkillLevel.BEGINNER.value: "Start from the fundamentals",
    SkillLevel.INTERMEDIATE.value: "Build on what you know",
    SkillLevel.ADVANCED.value: "Go deeper",
}


def _course(topic, provider, url, duration, description, price=0, rating=4.7):
    return {
        "topic": topic,
        "provider": provider,
        "url": url,
        "price": price,
        "rating": rating,
        "duration": duration,
        "description": description,
    }


CURATED_COURSES: Dict[str, List[Dict[str, Any]]] = {
    "Web Development": [
        _course("Web Development Foundations", "The Odin Project",
                "https://www.theodinproject.com/paths/foundations/courses/foundations",
                "Self-paced", "HTML, CSS, JavaScript and Git through guided projects", rating=4.9),
        _course("Responsive Web Design", "freeCodeCamp",
                "https://www.freecodecamp.org/learn/2022/responsive-web-design/",
                "300 hours", "Build responsive pages with modern HTML and CSS", rating=4.8),
        _course("JavaScript Algorithms and Data Structures", "freeCodeCamp",
                "https://www.freecodecamp.org/learn/javascript-algorithms-and-data-structures-v8/",
                "300 hours", "Core JavaScript through hundreds of small exercises", rating=4.8),
        _course("Web Programming with Python and JavaScript", "Harvard CS50",
                "https://cs50.harvard.edu/web/",
                "12 weeks", "Django, React-style front ends, SQL and deployment", rating=4.9),
        _course("HTML, CSS, and JavaScript", "Coursera",
                "https://www.coursera.org/learn/html-css-javascript-for-web-developers",
                "40 hours", "Johns Hopkins course on building real web pages"),
        _course("Web Development", "MDN",
                "https://developer.mozilla.org/en-US/docs/Learn_web_development",
                "Self-paced", "Mozilla's structured curriculum for the web platform", rating=4.8),
    ],
    "Data Science": [
        _course("Python for Data", "Kaggle Learn", "https://www.kaggle.com/learn/python",
                "5 hours", "The Python you need before analysing data"),
        _course("Pandas", "Kaggle Learn", "https://www.kaggle.com/learn/pandas",
                "4 hours", "Select, group and reshape tabular data"),
        _course("Data Analysis with Python", "freeCodeCamp",
                "https://www.freecodecamp.org/learn/data-analysis-with-python/",
                "300 hours", "NumPy, pandas and visualization with certification projects"),
        _course("Statistics and Probability", "Khan Academy",
                "https://www.khanacademy.org/math/statistics-probability",
                "Self-paced", "Descriptive statistics, inference and probability", rating=4.8),
        _course("Data Science Methodology", "Coursera",
                "https://www.coursera.org/learn/data-science-methodology",
                "6 hours", "How data science projects are framed and run"),
        _course("Computational Thinking and Data Science", "MIT OpenCourseWare",
                "https://ocw.mit.edu/courses/6-0002-introduction-to-computational-thinking-and-data-science-fall-2016/",
                "Self-paced", "Optimization, simulation and statistical thinking in Python", rating=4.8),
    ],
    "Machine Learning": [
        _course("Machine Learning", "Coursera", "https://www.coursera.org/learn/machine-learning",
                "60 hours", "Supervised learning, neural networks and practical advice", rating=4.9),
        _course("Model Building with scikit-learn", "Kaggle Learn",
                "https://www.kaggle.com/learn/intro-to-machine-learning",
                "3 hours", "Train, validate and improve your first models"),
        _course("Machine Learning with Python", "freeCodeCamp",
                "https://www.freecodecamp.org/learn/machine-learning-with-python/",
                "300 hours", "TensorFlow projects from classification to NLP", rating=4.6),
        _course("Deep Learning for Coders", "fast.ai", "https://course.fast.ai/Lessons/lesson1.html",
                "8 weeks", "Top-down, code-first deep learning", rating=4.9),
        _course("Artificial Intelligence with Python", "Harvard CS50", "https://cs50.harvard.edu/ai/",
                "7 weeks", "Search, optimization, learning and language models", rating=4.9),
        _course("Machine Learning A-Z", "Udemy", "https://www.udemy.com/course/machinelearning/",
                "42 hours", "Hands-on regression, classification and clustering", price=84.99, rating=4.5),
    ],
    "Mobile Development": [
        _course("Android with Jetpack Compose", "Google Developers",
                "https://developer.android.com/courses/android-basics-compose/course",
                "Self-paced", "Official Android course using Kotlin and Compose"),
        _course("SwiftUI", "Apple Developer", "https://developer.apple.com/tutorials/swiftui",
                "Self-paced", "Apple's step-by-step SwiftUI app tutorials", rating=4.8),
        _course("Flutter", "Flutter", "https://docs.flutter.dev/get-started/codelab",
                "2 hours", "Build a cross-platform app from scratch", rating=4.6),
        _course("Mobile App Development with React Native", "Harvard CS50",
                "https://cs50.harvard.edu/mobile/2018/",
                "13 weeks", "JavaScript, React and React Native apps"),
        _course("Android Apps with Kotlin", "Udacity",
                "https://www.udacity.com/course/developing-android-apps-with-kotlin--ud9012",
                "Self-paced", "Architecture components, navigation and data"),
    ],
    "Cloud Computing": [
        _course("Cloud Computing", "Coursera", "https://www.coursera.org/learn/introduction-to-cloud",
                "8 hours", "Service models, deployment models and cloud economics"),
        _course("AWS Cloud Practitioner Essentials", "AWS Skill Builder",
                "https://explore.skillbuilder.aws/learn/course/external/view/elearning/134/aws-cloud-practitioner-essentials",
                "6 hours", "Core AWS services, security and pricing"),
        _course("Azure Cloud Concepts", "Microsoft Learn",
                "https://learn.microsoft.com/en-us/training/paths/microsoft-azure-fundamentals-describe-cloud-concepts/",
                "3 hours", "Cloud concepts for the AZ-900 fundamentals path"),
        _course("Google Cloud Core Infrastructure", "Coursera",
                "https://www.coursera.org/learn/gcp-fundamentals",
                "8 hours", "Compute, storage and networking on Google Cloud"),
    ],
    "Cybersecurity": [
        _course("Cybersecurity Foundations", "Coursera",
                "https://www.coursera.org/learn/foundations-of-cybersecurity",
                "14 hours", "Google's introduction to security roles and frameworks", rating=4.8),
        _course("Cybersecurity", "Harvard CS50", "https://cs50.harvard.edu/cybersecurity/",
                "5 weeks", "Securing accounts, data, systems and software", rating=4.8),
        _course("Information Security", "freeCodeCamp",
                "https://www.freecodecamp.org/learn/information-security/",
                "300 hours", "HelmetJS, penetration testing scripts and secure apps", rating=4.6),
        _course("Computer Systems Security", "MIT OpenCourseWare",
                "https://ocw.mit.edu/courses/6-858-computer-systems-security-fall-2014/",
                "Self-paced", "Threat models, privilege separation and network security", rating=4.8),
    ],
    "DevOps": [
        _course("Docker", "Docker Docs", "https://docs.docker.com/get-started/",
                "3 hours", "Containers, images and compose files"),
        _course("Kubernetes Basics", "Kubernetes", "https://kubernetes.io/docs/tutorials/kubernetes-basics/",
                "2 hours", "Deploy, scale and update an app on a cluster"),
        _course("Terraform on AWS", "HashiCorp Developer",
                "https://developer.hashicorp.com/terraform/tutorials/aws-get-started",
                "2 hours", "Provision infrastructure as code"),
        _course("GitHub Actions", "GitHub Docs",
                "https://docs.github.com/en/actions/learn-github-actions/understanding-github-actions",
                "1 hour", "Automate build, test and deploy pipelines"),
        _course("DevOps Culture and Mindset", "Coursera",
                "https://www.coursera.org/learn/devops-culture-and-mindset",
                "12 hours", "Flow, feedback and continuous improvement"),
    ],
    "UI/UX Design": [
        _course("User Experience Design", "Coursera",
                "https://www.coursera.org/learn/foundations-user-experience-design",
                "18 hours", "Google's foundations of UX research and design", rating=4.8),
        _course("The Design of Everyday Things", "Udacity",
                "https://www.udacity.com/course/design-of-everyday-things--design101",
                "Self-paced", "Don Norman's principles of human-centered design"),
        _course("User Interface Design and Implementation", "MIT OpenCourseWare",
                "https://ocw.mit.edu/courses/6-813-user-interface-design-and-implementation-spring-2011/",
                "Self-paced", "Usability, prototyping and evaluation"),
    ],
    "IoT (Internet of Things)": [
        _course("IoT and Embedded Systems", "Coursera", "https://www.coursera.org/learn/iot",
                "10 hours", "Embedded hardware, software and networking basics"),
        _course("Raspberry Pi", "Raspberry Pi Foundation",
                "https://projects.raspberrypi.org/en/projects/raspberry-pi-getting-started",
                "1 hour", "Set up a Raspberry Pi and run your first project"),
        _course("Arduino", "Arduino Docs",
                "https://docs.arduino.cc/learn/starting-guide/getting-started-arduino",
                "2 hours", "Boards, sketches and sensors"),
    ],
    "Space Technology": [
        _course("Aerospace Engineering and Design", "MIT OpenCourseWare",
                "https://ocw.mit.edu/courses/16-00-introduction-to-aerospace-engineering-and-design-spring-2003/",
                "Self-paced", "Aerodynamics, propulsion and vehicle design", rating=4.8),
        _course("Satellite Engineering", "MIT OpenCourseWare",
                "https://ocw.mit.edu/courses/16-851-satellite-engineering-fall-2003/",
                "Self-paced", "Orbits, power, communication and spacecraft subsystems"),
        _course("Cosmology and Astronomy", "Khan Academy",
                "https://www.khanacademy.org/science/cosmology-and-astronomy",
                "Self-paced", "Scale of the universe, stars and planetary systems"),
    ],
    "Hardware": [
        _course("Computer Architecture from First Principles", "Coursera",
                "https://www.coursera.org/learn/build-a-computer",
                "40 hours", "Build a computer from NAND gates up (Nand2Tetris part I)", rating=4.9),
        _course("Computation Structures", "MIT OpenCourseWare",
                "https://ocw.mit.edu/courses/6-004-computation-structures-spring-2017/",
                "Self-paced", "Digital logic, processors and memory hierarchies", rating=4.8),
        _course("Electrical Engineering", "Khan Academy",
                "https://www.khanacademy.org/science/electrical-engineering",
                "Self-paced", "Circuits, amplifiers and semiconductors"),
    ],
}

GENERAL_COURSES = [
    _course("Computer Science", "Harvard CS50", "https://cs50.harvard.edu/x/",
            "12 weeks", "Harvard's broad introduction to programming and CS", rating=4.9),
    _course("Learning How to Learn", "Coursera", "https://www.coursera.org/learn/learning-how-to-learn",
            "15 hours", "Techniques for mastering tough subjects", rating=4.8),
    _course("Computer Science and Programming in Python", "MIT OpenCourseWare",
            "https://ocw.mit.edu/courses/6-0001-introduction-to-computer-science-and-programming-in-python-fall-2016/",
            "Self-paced", "Computational thinking with Python", rating=4.8),
    _course("Scientific Computing with Python", "freeCodeCamp",
            "https://www.freecodecamp.org/learn/scientific-computing-with-python/",
            "300 hours", "Python fundamentals through projects"),
    _course("Git and GitHub", "GitHub Skills", "https://github.com/skills/introduction-to-github",
            "1 hour", "Branches, commits and pull requests, hands-on"),
    _course("Python Programming Bootcamp", "Udemy", "https://www.udemy.com/course/100-days-of-code/",
            "60 hours", "100 daily projects from scripting to web apps", price=84.99, rating=4.7),
]


def _slug(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")


def _build_curated_course(entry: Dict[str, Any], domain: str, skill_level: str) -> Dict[str, Any]:
    template = TITLE_TEMPLATES.get(skill_level, TITLE_TEMPLATES[SkillLevel.BEGINNER.value])
    blurb = LEVEL_BLURBS.get(skill_level, LEVEL_BLURBS[SkillLevel.BEGINNER.value])
    price = entry["price"]
    return {
        "id": f"{_slug(domain)}-{_slug(entry['topic'])}",
        "title": template.format(topic=entry["topic"]),
        "provider": entry["provider"],
        "url": entry["url"],
        "domain": domain,
        "skillLevel": skill_level,
        "price": price,
        "rating": entry["rating"],
        "duration": entry["duration"],
        "description": f"{blurb}: {entry['description']}",
        "isFree": price == 0,
    }


def get_curated_courses(
    domain: str,
    skill_level: str,
    minimum: int = MIN_VALID_COURSES,
) -> List[Dict[str, Any]]:
    """
    Curated courses for a domain, padded with general courses up to ``minimum``.
    """
    entries = list(CURATED_COURSES.get(domain, []))
    seen = {e["url"] for e in entries}
    for entry in GENERAL_COURSES:
        if len(entries) >= max(minimum, 1):
            break
        if entry["url"] not in seen:
            entries.append(entry)
            seen.add(entry["url"])

    return [
        _build_curated_course(entry, domain, skill_level)
        for entry in entries[:MAX_FALLBACK_COURSES]
    ]


# =============================================================================
# Generation
# =============================================================================

def _as_price(value: Any) -> float:
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)) and value > 0:
        return round(float(value), 2)
    return 0.0


def _as_rating(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return round(min(max(float(value), 0.0), 5.0), 1)


def normalize_generated_course(
    raw: Any,
    domain: str,
    skill_level: str,
    index: int,
) -> Optional[Dict[str, Any]]:
    """
    Clean one generated course, or return None if it must be discarded.
    """
    if not isinstance(raw, dict):
        return None

    title = raw.get("title")
    url = raw.get("url")
    provider = raw.get("provider") or raw.get("platform")

    if not isinstance(title, str) or not title.strip():
        return None
    if not isinstance(provider, str) or not provider.strip():
        return None
    if not is_specific_course_url(url):
        return None

    price = _as_price(raw.get("price"))
    is_free = raw.get("isFree")
    if not isinstance(is_free, bool):
        is_free = price == 0
    if is_free:
        price = 0.0

    raw_id = raw.get("id")
    course_id = str(raw_id) if raw_id not in (None, "") else f"{_slug(domain)}-generated-{index + 1}"

    description = raw.get("description")
    duration = raw.get("duration")

    return {
        "id": course_id,
        "title": title.strip(),
        "provider": provider.strip(),
        "url": url.strip(),
        "domain": domain,
        "skillLevel": skill_level,
        "price": price,
        "rating": _as_rating(raw.get("rating")),
        "duration": duration.strip() if isinstance(duration, str) and duration.strip() else "Self-paced",
        "description": description.strip()[:200] if isinstance(description, str) else "",
        "isFree": is_free,
    }


def filter_generated_courses(
    data: Any,
    domain: str,
    skill_level: str,
) -> List[Dict[str, Any]]:
    """Normalize a generated payload, dropping invalid and duplicate courses."""
    if not isinstance(data, dict) or not isinstance(data.get("courses"), list):
        return []

    courses = []
    seen_urls = set()
    for i, raw in enumerate(data["courses"]):
        course = normalize_generated_course(raw, domain, skill_level, i)
        if course is None:
            continue
        key = course["url"].rstrip("/").lower()
        if key in seen_urls:
            continue
        seen_urls.add(key)
        courses.append(course)
    return courses


def build_course_prompt(domain: str, skill_level: str, count: int) -> str:
    return f"""Recommend {count} high-quality courses for learning {domain} at {skill_level} level.
Include MOSTLY FREE options (at least {count - 3} free courses), with a few paid options.

Every url MUST link directly to one specific course, playlist or video page
(for example https://www.coursera.org/learn/<course-slug> or
https://www.youtube.com/watch?v=<id>). Never give a platform homepage or a
search/catalog page.

For each course provide:
- id: short unique slug
- title: actual course name appropriate for a {skill_level} learner
- provider: real platform (Coursera, freeCodeCamp, YouTube, Udemy, edX, Khan Academy, MIT OpenCourseWare, etc.)
- url: direct course URL
- isFree: true for free courses, false for paid
- price: 0 for free, realistic price in USD for paid courses
- rating: 4.0-5.0
- duration: e.g. "4 weeks", "20 hours", "Self-paced"
- description: max 150 characters

Return ONLY valid JSON:
{{
  "courses": [
    {{
      "id": "unique-id",
      "title": "Course Title",
      "provider": "Platform Name",
      "url": "https://platform.com/course/specific-course",
      "price": 0,
      "rating": 4.5,
      "duration": "4 weeks",
      "description": "Brief description",
      "isFree": true
    }}
  ]
}}"""


def recommend_courses(
    domain: str,
    skill_level: str,
    minimum: int = MIN_VALID_COURSES,
) -> Recommendation:
    """
    Recommend courses for a domain and skill level.

    Generated courses are used only if at least ``minimum`` of them pass
    validation; otherwise the complete curated list is returned.
    """
    try:
        data = openai_service.complete_json(
            system_prompt=(
                "You are a learning path expert. Recommend real, high-quality courses "
                "from reputable platforms. Emphasize free courses and link to specific course pages."
            ),
            prompt=build_course_prompt(domain, skill_level, REQUESTED_COURSE_COUNT),
            timeout=COURSE_TIMEOUT_SECONDS,
            temperature=COURSE_TEMPERATURE,
        )
    except OpenAIServiceError as e:
        logger.warning(f"Course generation for {domain!r} failed, using curated list: {e}")
        return Recommendation(domain, skill_level, get_curated_courses(domain, skill_level), "curated")

    courses = filter_generated_courses(data, domain, skill_level)
    if len(courses) < minimum:
        logger.warning(
            f"Only {len(courses)} generated courses for {domain!r} passed validation "
            f"(need {minimum}), using curated list"
        )
        return Recommendation(domain, skill_level, get_curated_courses(domain, skill_level), "curated")

    return Recommendation(domain, skill_level, courses, "generated")
