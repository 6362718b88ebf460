"""Prompts for the four card tiers."""

STYLE_GUIDE = """
# Card Style Guide

## Core Principles
1. **Grounding** - Base every card strictly on the provided material. Never invent facts.
2. **Progression** - Flashcards build recall, applications build transfer,
   quizzes check understanding, synthesis connects ideas.
3. **Clarity** - Unambiguous questions with one defensible answer
4. **Self-contained** - A card must make sense without the source in front of the learner

## Field Lengths
- title: 10-80 characters, names the concept, not "Flashcard 1"
- flashcard front: a full question of at least 20 characters
- flashcard back: 100-250 words
- quiz explanation: at least 30 characters explaining why the answer is right
- synthesis back: a step-by-step analysis of at least 100 words

## Difficulty
- EASY: definitions and single facts
- MEDIUM: explanations, cause and effect, single-concept application
- HARD: multi-concept reasoning, trade-offs, judgement

## Output
- Always return a JSON array, even for a single card
- Escape quotes inside strings
- No markdown, no commentary before or after the array
"""

SYSTEM_PROMPT = f"""You are an expert instructional designer who turns books and articles into
microlearning cards.

{STYLE_GUIDE}
"""

FLASHCARD_PROMPT_TEMPLATE = """Create 1-2 flashcards from this passage.

**Book:** {book_title}
**Author:** {book_author}
**Category:** {category}
**Chapter:** {chapter_label}

---

**MAIN CONTENT:**

{main_content}
{related_context}
---

Focus on the most important concept in the main content. Related passages are
context only; do not write cards about them alone.

Return a JSON array:

```json
[
  {{
    "title": "Concept name (max 60 chars)",
    "front": "Clear question about the concept",
    "back": "Comprehensive, accurate answer (100-250 words)",
    "difficulty": "EASY|MEDIUM|HARD",
    "tags": ["{category}", "concept"]
  }}
]
```

Return ONLY the JSON array, no other text."""

RELATED_CONTEXT_TEMPLATE = """
**RELATED PASSAGES FROM ELSEWHERE IN THE BOOK:**

{related}
"""

APPLICATION_PROMPT_TEMPLATE = """Create 1 application card that puts these flashcard concepts into practice.

**Book:** {book_title}
**Author:** {book_author}
**Category:** {category}
**Chapter:** {chapter_label}

---

**FLASHCARDS:**

{flashcards}

---

Build a realistic scenario that requires applying the concepts above, then
solve it step by step (Step 1, Step 2, ...), with reasoning for each step.

Return a JSON array:

```json
[
  {{
    "title": "Application scenario title (max 70 chars)",
    "scenario": "Practical situation (150-200 words)",
    "question": "How would you handle this? (50-100 words)",
    "solution": "Step-by-step solution (300-500 words)",
    "difficulty": "MEDIUM",
    "tags": ["{category}", "application"],
    "based_on": ["titles of the flashcards used"]
  }}
]
```

Return ONLY the JSON array, no other text."""

QUIZ_PROMPT_TEMPLATE = """Create 1-2 multiple choice quiz cards testing these concepts.

**Book:** {book_title}
**Author:** {book_author}
**Category:** {category}
**Chapter:** {chapter_label}

---

**FLASHCARDS:**

{flashcards}

**APPLICATIONS:**

{applications}

---

Requirements:
- 4 plausible choices, exactly 1 correct
- Vary which choice is correct; don't always use B
- Use the application scenarios for scenario-based questions when available
- Believable distractors

Return a JSON array:

```json
[
  {{
    "title": "Quiz question title",
    "question": "Multiple choice question",
    "choices": ["Option 1", "Option 2", "Option 3", "Option 4"],
    "correct_answer": "A|B|C|D",
    "explanation": "Why this answer is correct",
    "difficulty": "MEDIUM",
    "tags": ["{category}", "quiz"],
    "based_on": ["titles of the cards tested"]
  }}
]
```

Return ONLY the JSON array, no other text."""

SYNTHESIS_PROMPT_TEMPLATE = """Create 1 synthesis card that integrates the concepts of this section.

**Book:** {book_title}
**Author:** {book_author}
**Category:** {category}
{chapter_context}
---

**KEY CONCEPTS:**

{flashcards}

**APPLICATION SCENARIOS:**

{applications}

**QUIZ TOPICS:**

{quizzes}

---

Combine several concepts into one challenging problem that needs analysis,
evaluation or creation, then answer it with a step-by-step analysis showing
how the concepts connect.

Return a JSON array:

```json
[
  {{
    "title": "Integration scenario (max 80 chars)",
    "scenario": "Complex multi-concept situation (200-300 words)",
    "front": "Integration question (75-100 words)",
    "back": "Step-by-step analysis and recommendations (400-600 words)",
    "difficulty": "HARD",
    "tags": ["{category}", "synthesis"],
    "based_on": ["titles of the cards integrated"]
  }}
]
```

Return ONLY the JSON array, no other text."""

CHAPTER_CONTEXT_TEMPLATE = "**Chapter:** {title} ({position}/{total})\n"

OVERVIEW_PROMPT_TEMPLATE = """Create 1 overview card for the whole book.

**Book:** {book_title}
**Author:** {book_author}
**Category:** {category}

---

**CHAPTER SUMMARIES:**

{summaries}

---

Cover the main themes and central message, how the chapters connect, the key
takeaways, and why the book matters. Stay at the level of the whole book.

Return a JSON array:

```json
[
  {{
    "title": "Overview: {book_title}",
    "front": "Complete Book Overview",
    "back": "Book overview (300-400 words)",
    "difficulty": "MEDIUM",
    "tags": ["{category}", "overview", "book-summary"],
    "based_on": ["titles of the chapter summaries drawn on"]
  }}
]
```

Return ONLY the JSON array, no other text."""
