"""
Journal entry analysis: suggested tags, emotions, topics, summary and sentiment.

Uses the OpenAI chat completions API when an API key is configured. Any API or
parse failure (quota, timeout, malformed JSON) falls back to a deterministic
keyword analysis so that saving an entry never depends on the provider.
"""
from __future__ import annotations

import json
import logging
import math
import re
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

MAX_TAGS = 8

EMOTION_KEYWORDS = (
    "happy", "sad", "angry", "anxious", "stressed",
    "worried", "excited", "calm", "frustrated", "confident",
    "fear", "joy", "love", "trust", "pride", "hopeful",
    "nervous", "confused", "overwhelmed", "peaceful", "grateful",
    "motivated", "disappointed", "content", "lonely", "guilty",
    "ashamed", "embarrassed", "surprised", "jealous", "hopeless",
    "satisfied", "hurt", "insecure", "regretful", "optimistic",
    "pessimistic", "apathetic", "bored", "enthusiastic", "determined",
    "discouraged", "vulnerable", "resentful", "compassionate",
    "depressed", "numb", "empty", "exhausted", "tired", "drained",
    "helpless", "struggling", "grief", "grieving", "hope", "despair",
    "meaningless", "lost", "distressed", "miserable", "relief", "relieved",
    "alone", "isolated", "distant", "disconnected", "detached",
    "heavy", "hollow", "void", "abandoned", "suffocating",
    "tense", "uneasy", "restless", "unsettled", "apprehensive",
)

TOPIC_KEYWORDS = (
    "work", "family", "relationship", "health", "sleep",
    "exercise", "friends", "challenge", "success", "failure",
    "conflict", "achievement", "goal", "worry", "progress",
    "therapy", "recovery", "career", "education", "finances",
    "hobby", "self-care", "mindfulness", "meditation", "spirituality",
    "communication", "boundaries", "leisure", "trauma", "coping",
    "personal growth", "responsibility", "self-esteem", "identity",
    "productivity", "relaxation", "habits", "learning", "time management",
    "mental health", "physical health", "social life", "home",
)

# Phrases that signal an emotion without naming it.
EMOTIONAL_PHRASES = (
    (r"hollow\s+ache|heavy\s+heart|heart\s+aches|chest\s+tight", "sad"),
    (r"tears|cry|sobbing|weeping", "sad"),
    (r"sinking feeling|pit of my stomach", "sad"),
    (r"can'?t stop thinking about|keep remembering", "sad"),
    (r"dark\s+corners|dark\s+thoughts|restless|uninvited\s+thoughts", "anxious"),
    (r"racing\s+heart|racing\s+mind|racing\s+thoughts|heart\s+pounds", "anxious"),
    (r"can'?t\s+sleep|insomnia|awake\s+at\s+night|tossing\s+turning", "anxious"),
    (r"pacing|fidgeting|nail biting", "anxious"),
    (r"worried|overthinking|ruminating|what if", "anxious"),
    (r"trembling|shaking|tremors|freeze", "fearful"),
    (r"terror|scared|frightened|panic", "fearful"),
    (r"hide\s+struggle|hiding\s+pain|conceal\s+feelings|mask|facade", "struggling"),
    (r"pretend|fake smile|act like|putting on a face", "struggling"),
    (r"weight\s+on|burden|shoulders|carrying", "overwhelmed"),
    (r"too much|can'?t handle|drowning|sinking", "overwhelmed"),
    (r"alone|lonely|isolated|no\s+one|by myself", "lonely"),
    (r"disconnected|cut off|abandoned|no one understands", "lonely"),
    (r"exhausted|drained|no\s+energy|tired|fatigue", "exhausted"),
    (r"can'?t focus|brain fog|difficult to concentrate", "exhausted"),
    (r"irritated|annoyed|bothered|agitated", "frustrated"),
    (r"unfair|stuck|trapped|no way out", "frustrated"),
    (r"numb|nothing|emptiness|void|hollow", "numb"),
    (r"can'?t feel|emotionless|blank|empty inside", "numb"),
    (r"empty|meaningless|pointless|purposeless", "empty"),
    (r"why bother|what'?s the point|going through motions", "empty"),
    (r"floating in a void|distant|far from|absent|not present", "empty"),
    (r"smile|grin|laugh|chuckle|joy", "happy"),
    (r"feeling good|great day|positive|cheerful", "happy"),
    (r"grateful|thankful|appreciate|blessed", "grateful"),
    (r"hopeful|looking\s+forward|optimistic|better\s+days", "hopeful"),
    (r"quiet|silence|peaceful|tranquil", "calm"),
    (r"knot in (my|the) throat|lump in (my|the) throat", "sad"),
    (r"stomach (in|into) knots|butterflies|churning", "anxious"),
)

POSITIVE_EMOTIONS = frozenset({
    "happy", "excited", "confident", "joy", "love", "trust", "pride", "hopeful",
    "peaceful", "grateful", "motivated", "content", "satisfied", "optimistic",
    "enthusiastic", "determined", "compassionate", "relieved", "cheerful", "pleased",
    "delighted", "joyful", "elated", "glad", "serene",
})

NEGATIVE_EMOTIONS = frozenset({
    "sad", "angry", "anxious", "stressed", "worried", "frustrated", "fear", "nervous",
    "confused", "overwhelmed", "lonely", "guilty", "ashamed", "embarrassed", "jealous",
    "hopeless", "hurt", "insecure", "regretful", "pessimistic", "discouraged", "vulnerable",
    "resentful", "unhappy", "distrust", "dislike", "uncomfortable", "dissatisfied", "displeased",
    "empty", "numb", "depressed", "desperate", "miserable", "upset", "grief", "grieving",
    "lost", "helpless", "drained", "exhausted", "tired", "distressed",
    "alone", "isolated", "distant", "disconnected", "detached", "abandoned",
    "suffocating", "tense", "uneasy", "restless", "unsettled", "apprehensive",
})

NEUTRAL_EMOTIONS = frozenset({
    "calm", "reflective", "surprised", "apathetic", "bored", "curious",
    "interested", "thoughtful", "contemplative", "nostalgic", "indifferent",
    "pensive", "wondering",
})

_NEGATION_RE = re.compile(
    r"\b(?:not|don'?t|didn'?t|isn'?t|aren'?t|wasn'?t|weren'?t|haven'?t|hasn'?t|wouldn'?t"
    r"|couldn'?t|shouldn'?t|no|never|nor|neither|lack\s+of|avoid|refuse\s+to)\s+(\w+)\b",
    re.IGNORECASE,
)

# "not happy" becomes "sad", and so on; anything else negated becomes "unhappy".
_NEGATED_OPPOSITES = {"happy": "sad", "excited": "bored", "love": "dislike"}

_NEGATIVE_EXPRESSION_RE = re.compile(
    r"not happy|unhappy|not satisfied|dissatisfied|not comfortable|uncomfortable|not pleased"
    r"|displeased|not glad|not excited|not confident|not trusting|distrust|mistrust|insecure|anxious",
    re.IGNORECASE,
)

_EMPTINESS_RE = re.compile(
    r"floating in a void|distant|far from|absent|not present|far from fine|knot tightens"
    r"|go through motions|hollow|void|empty|numb|emotionless|blank|empty inside|can'?t feel",
    re.IGNORECASE,
)


@dataclass
class Sentiment:
    positive: float = 0
    negative: float = 0
    neutral: float = 0


@dataclass
class JournalAnalysis:
    suggested_tags: list[str] = field(default_factory=list)
    analysis: str = ""
    emotions: list[str] = field(default_factory=list)
    topics: list[str] = field(default_factory=list)
    sentiment: Sentiment = field(default_factory=Sentiment)


def _has_word(keyword: str, text: str) -> bool:
    return re.search(rf"\b{re.escape(keyword)}\b", text, re.IGNORECASE) is not None


def _round_half_up(x: float) -> int:
    return math.floor(x + 0.5)


def _summary(emotions: list[str], topics: list[str]) -> str:
    if emotions and topics:
        return (
            f"This entry reflects {', '.join(emotions)} emotions in relation to {', '.join(topics)}. "
            "Consider how these feelings influence your approach to these areas of your life."
        )
    if emotions:
        return (
            f"This entry primarily expresses {', '.join(emotions)} emotions. "
            "Reflecting on the sources of these feelings may provide additional insights."
        )
    if topics:
        return (
            f"This entry focuses on {', '.join(topics)}. "
            "Consider exploring your emotional responses to these topics in future reflections."
        )
    return (
        "This entry contains general reflections. "
        "Consider exploring specific emotions and scenarios in future entries for deeper insights."
    )


def fallback_analysis(title: str, content: str) -> JournalAnalysis:
    """Keyword-based analysis used when the AI provider is unavailable."""
    text = f"{title} {content}".lower()

    emotions = [k for k in EMOTION_KEYWORDS if _has_word(k, text)]
    topics = [k for k in TOPIC_KEYWORDS if _has_word(k, text)]
    tags = emotions + topics

    if len(emotions) < 3:
        for pattern, emotion in EMOTIONAL_PHRASES:
            if emotion not in emotions and re.search(pattern, text, re.IGNORECASE):
                emotions.append(emotion)
                tags.append(emotion)
                if len(emotions) >= 3:
                    break
        if len(emotions) < 2:
            for keyword in EMOTION_KEYWORDS:
                if keyword not in emotions and keyword in text:
                    emotions.append(keyword)
                    tags.append(keyword)
                    if len(emotions) >= 3:
                        break

    if len(topics) < 2:
        for keyword in TOPIC_KEYWORDS:
            if keyword not in topics and keyword in text:
                topics.append(keyword)
                tags.append(keyword)
                if len(topics) >= 3:
                    break

    if len(tags) < 3:
        tags.extend(["journal", "reflection"])
        if not emotions:
            troubled = any(w in text for w in ("problem", "difficult", "bad", "hard", "trouble", "issue"))
            general = "concerned" if troubled else "reflective"
            tags.append(general)
            emotions.append(general)
        if not topics:
            tags.append("personal development")
            topics.append("personal development")
        tags.append("detailed" if len(content) > 500 else "brief")

    suggested = list(dict.fromkeys(tags))[:MAX_TAGS]
    summary = _summary(emotions, topics)

    # Negated positive emotions flip to their negative counterpart.
    negated_words = [m.group(1).lower() for m in _NEGATION_RE.finditer(text)]
    for word in negated_words:
        if word in POSITIVE_EMOTIONS:
            emotions.append(_NEGATED_OPPOSITES.get(word, "unhappy"))
            if word in emotions:
                emotions.remove(word)

    has_negative_expression = False
    if _NEGATIVE_EXPRESSION_RE.search(text):
        has_negative_expression = True
        if "unhappy" not in emotions:
            emotions.append("unhappy")
        if re.search(r"anxious|anxiety", text) and "anxious" not in emotions:
            emotions.append("anxious")
        if re.search(r"distrust|mistrust|not trust", text) and "distrust" not in emotions:
            emotions.append("distrust")

    if _EMPTINESS_RE.search(text) and any(e in ("numb", "empty", "hollow", "void", "absent") for e in emotions):
        if "happy" in emotions:
            emotions.remove("happy")
        for e in ("empty", "numb"):
            if e not in emotions:
                emotions.append(e)
        sentiment = Sentiment(positive=0, negative=85, neutral=15)
    else:
        pos = sum(1 for e in emotions if e in POSITIVE_EMOTIONS)
        neg = sum(1 for e in emotions if e in NEGATIVE_EMOTIONS)
        neu = sum(1 for e in emotions if e in NEUTRAL_EMOTIONS)
        total = pos + neg + neu
        sentiment = Sentiment()
        if total:
            sentiment.positive = _round_half_up(pos / total * 100)
            sentiment.negative = _round_half_up(neg / total * 100)
            sentiment.neutral = max(0, 100 - sentiment.positive - sentiment.negative)

        negated_positive = any(w in POSITIVE_EMOTIONS for w in negated_words)
        if (has_negative_expression and sentiment.positive > 50) or (
            negated_positive and sentiment.positive > sentiment.negative
        ):
            sentiment = Sentiment(positive=20, negative=60, neutral=20)

    return JournalAnalysis(
        suggested_tags=suggested,
        analysis=summary,
        emotions=list(dict.fromkeys(emotions)),
        topics=topics,
        sentiment=sentiment,
    )


_PROMPT = """
Please analyze the following journal entry in the context of cognitive behavioral therapy.
The entry title is: "{title}"

Journal content:
"{content}"

Provide the following in JSON format:
1. suggestedTags: Extract 3-8 most relevant tags that would help categorize this journal entry
2. analysis: A brief (2-3 sentences) summary of the main themes and emotional content
3. emotions: Up to 5 emotions expressed in the entry
4. topics: Up to 5 main topics or themes discussed
5. sentiment: Score the overall emotional tone with percentages for positive, negative, and neutral (totaling 100%)

Your response should be a valid JSON object with these fields.
"""


def _str_list(value: object, limit: int) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(v).strip().lower() for v in value if str(v).strip()][:limit]


def parse_ai_response(raw: str) -> JournalAnalysis:
    """Normalize the provider's JSON object. Raises ValueError on anything unusable."""
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError("analysis response is not a JSON object")
    sentiment = data.get("sentiment") or {}
    if not isinstance(sentiment, dict):
        raise ValueError("sentiment is not an object")
    tags = _str_list(data.get("suggestedTags"), MAX_TAGS)
    if not tags:
        raise ValueError("analysis response has no tags")
    return JournalAnalysis(
        suggested_tags=tags,
        analysis=str(data.get("analysis") or "").strip(),
        emotions=_str_list(data.get("emotions"), 5),
        topics=_str_list(data.get("topics"), 5),
        sentiment=Sentiment(
            positive=float(sentiment.get("positive") or 0),
            negative=float(sentiment.get("negative") or 0),
            neutral=float(sentiment.get("neutral") or 0),
        ),
    )


def analyze_entry(title: str, content: str, *, api_key: str = "", model: str = "gpt-4o") -> JournalAnalysis:
    if not api_key:
        return fallback_analysis(title, content)

    from openai import OpenAI, OpenAIError

    try:
        client = OpenAI(api_key=api_key, timeout=20.0, max_retries=0)
        response = client.chat.completions.create(
            model=model,
            messages=[{"role": "user", "content": _PROMPT.format(title=title, content=content)}],
            response_format={"type": "json_object"},
            temperature=0.7,
        )
        raw = response.choices[0].message.content or ""
        return parse_ai_response(raw)
    except OpenAIError as e:
        logger.warning("Journal analysis API error, using fallback analysis: %s", e)
    except (ValueError, TypeError) as e:
        logger.warning("Journal analysis response unusable, using fallback analysis: %s", e)
    return fallback_analysis(title, content)
