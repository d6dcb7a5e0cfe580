"""
Locale string tables for detective and witness prompts.

Every locale supplies the same keys; code looks strings up by key and never
branches on the language. Prompt authors: follow-up items must be phrased as
direct questions about the document's content, never as questions about the
witness (e.g. "Which nutrients are named?", not "Ask the witness which ...").
Witness framing must keep answers first-person, grounded in the supplied
content only, and explicit when something is not in it.
"""

from interrogator.agent.strategy import Strategy

DEFAULT_LANGUAGE = "en"

LOCALES: dict[str, dict] = {
    "en": {
        "question_prompts": {
            Strategy.BROAD_OVERVIEW: (
                'Given the topic/question: "{hypothesis}"\n\n'
                "Ask a broad question to get an overview of all main aspects. "
                "Return ONLY the question in the same language as the topic, nothing else."
            ),
            Strategy.DEEP_DIVE: (
                'Given the topic/question: "{hypothesis}"\n\n'
                "Ask a specific question to dive deep into one aspect. "
                "Return ONLY the question in the same language as the topic, nothing else."
            ),
            Strategy.FACT_CHECK: (
                'Given the topic/question: "{hypothesis}"\n\n'
                "Ask a question where you expect specific factual information that can be verified. "
                "Return ONLY the question in the same language as the topic, nothing else."
            ),
            Strategy.TIMELINE: (
                'Given the topic/question: "{hypothesis}"\n\n'
                "Ask about the sequence, process, or timeline of what happens. "
                "Return ONLY the question in the same language as the topic, nothing else."
            ),
        },
        "fallback_questions": {
            Strategy.BROAD_OVERVIEW: "What are the main aspects of this topic?",
            Strategy.DEEP_DIVE: "What exactly does the document say about {hypothesis}?",
            Strategy.FACT_CHECK: "What specific facts are mentioned about this?",
            Strategy.TIMELINE: "What is the sequence or process described?",
        },
        "findings_label": "FINDINGS:",
        "follow_up_label": "FOLLOW-UP:",
        "analysis_prompt": (
            "You are analyzing an answer that was given strictly from a document. "
            "Extract key facts and identify gaps worth a follow-up question.\n\n"
            'Question asked: "{question}"\n'
            'Answer: "{answer}"\n\n'
            "Respond in English with exactly two sections:\n"
            "{findings_label}\n"
            "- one concrete fact, statement or claim per line\n\n"
            "{follow_up_label}\n"
            "- one follow-up question per line\n\n"
            "Each follow-up must be a direct question about the document's content "
            '(e.g. "Which steps come after the first one?"). Never ask about the person '
            "answering, the witness, or where they got the information. "
            "If the answer says the information is not in the document, record that as a finding."
        ),
        "absence_phrases": (
            "not in the document",
            "not mentioned in the document",
            "the document does not",
            "the document doesn't",
            "i don't know",
            "i do not know",
            "no information",
        ),
        "absence_finding": "The requested information is not in the document",
        "heuristics": (
            (("because", "due to", "caused by"), "Answer names a cause or reason", "What exactly causes this?"),
            (("first", "then", "after", "before", "finally"), "Answer describes a sequence of steps", "What happens at each step of the sequence?"),
            (("percent", "%", "amount", "number of"), "Answer mentions specific quantities", "Which exact figures are given?"),
            (("must", "required", "should"), "Answer states a requirement or rule", "Under which conditions does this requirement apply?"),
        ),
        "witness_system_prompt": (
            "You are a witness in an interrogation. Your knowledge is based ONLY on the document available to you.\n\n"
            "IMPORTANT:\n"
            '- ALWAYS answer in the FIRST PERSON ("I know...", "I read...", "The document states...")\n'
            '- NEVER speak in the 3rd person about "the witness"\n'
            '- If something is not in the document, say: "That is not in the document." or "I don\'t know that."\n'
            "- NO speculation about filenames, meta-information, or sources outside the document content\n"
            "- ONLY answer based on the actual document content"
        ),
        "question_label": "Question:",
        "context_label": "Based on this context from the document:",
        "answer_label": "Answer as witness:",
    },
    "de": {
        "question_prompts": {
            Strategy.BROAD_OVERVIEW: (
                'Gegeben ist das Thema/die Frage: "{hypothesis}"\n\n'
                "Stelle eine breite Frage, um einen Überblick über alle Hauptaspekte zu bekommen. "
                "Gib NUR die Frage in der Sprache des Themas zurück, nichts anderes."
            ),
            Strategy.DEEP_DIVE: (
                'Gegeben ist das Thema/die Frage: "{hypothesis}"\n\n'
                "Stelle eine konkrete Frage, die einen Aspekt vertieft. "
                "Gib NUR die Frage in der Sprache des Themas zurück, nichts anderes."
            ),
            Strategy.FACT_CHECK: (
                'Gegeben ist das Thema/die Frage: "{hypothesis}"\n\n'
                "Stelle eine Frage, deren Antwort überprüfbare Fakten enthält. "
                "Gib NUR die Frage in der Sprache des Themas zurück, nichts anderes."
            ),
            Strategy.TIMELINE: (
                'Gegeben ist das Thema/die Frage: "{hypothesis}"\n\n'
                "Frage nach dem Ablauf, Prozess oder der zeitlichen Abfolge. "
                "Gib NUR die Frage in der Sprache des Themas zurück, nichts anderes."
            ),
        },
        "fallback_questions": {
            Strategy.BROAD_OVERVIEW: "Was sind die Hauptaspekte dieses Themas?",
            Strategy.DEEP_DIVE: "Was genau steht im Dokument über {hypothesis}?",
            Strategy.FACT_CHECK: "Welche konkreten Fakten werden dazu genannt?",
            Strategy.TIMELINE: "Welcher Ablauf oder Prozess wird beschrieben?",
        },
        "findings_label": "ERKENNTNISSE:",
        "follow_up_label": "NACHFRAGEN:",
        "analysis_prompt": (
            "Du analysierst eine Antwort, die ausschließlich auf einem Dokument beruht. "
            "Extrahiere die wichtigsten Fakten und finde Lücken für Nachfragen.\n\n"
            'Gestellte Frage: "{question}"\n'
            'Antwort: "{answer}"\n\n'
            "Antworte auf Deutsch mit genau zwei Abschnitten:\n"
            "{findings_label}\n"
            "- ein konkreter Fakt, eine Aussage oder Behauptung pro Zeile\n\n"
            "{follow_up_label}\n"
            "- eine Nachfrage pro Zeile\n\n"
            "Jede Nachfrage muss eine direkte Frage zum Inhalt des Dokuments sein "
            '(z. B. "Welche Schritte folgen auf den ersten?"). Frage niemals nach der antwortenden '
            "Person, dem Zeugen oder der Herkunft der Information. "
            "Wenn die Antwort sagt, dass etwas nicht im Dokument steht, notiere das als Erkenntnis."
        ),
        "absence_phrases": (
            "nicht im dokument",
            "steht nicht im",
            "das weiß ich nicht",
            "weiß ich nicht",
            "keine information",
            "keine angaben",
        ),
        "absence_finding": "Die gesuchte Information steht nicht im Dokument",
        "heuristics": (
            (("weil", "aufgrund", "verursacht"), "Antwort nennt eine Ursache oder einen Grund", "Was genau verursacht das?"),
            (("zuerst", "dann", "danach", "vorher", "schließlich"), "Antwort beschreibt eine Abfolge von Schritten", "Was passiert in jedem Schritt der Abfolge?"),
            (("prozent", "%", "menge", "anzahl"), "Antwort nennt konkrete Mengen", "Welche genauen Zahlen werden genannt?"),
            (("muss", "erforderlich", "sollte"), "Antwort nennt eine Vorgabe oder Regel", "Unter welchen Bedingungen gilt diese Vorgabe?"),
        ),
        "witness_system_prompt": (
            "Du bist ein Zeuge in einem Verhör. Dein Wissen basiert NUR auf dem Dokument, das dir zur Verfügung steht.\n\n"
            "WICHTIG:\n"
            '- Antworte IMMER in der ICH-Form ("Ich weiß...", "Ich habe gelesen...", "Im Dokument steht...")\n'
            '- NIEMALS in der 3. Person über "den Zeugen" sprechen\n'
            '- Wenn etwas nicht im Dokument steht: "Das steht nicht im Dokument." oder "Das weiß ich nicht."\n'
            "- KEIN Spekulieren über Dateinamen, Meta-Informationen oder Quellen außerhalb des Dokumentinhalts\n"
            "- NUR Antworten basierend auf dem tatsächlichen Dokumentinhalt"
        ),
        "question_label": "Frage:",
        "context_label": "Basierend auf diesem Kontext aus dem Dokument:",
        "answer_label": "Antwort als Zeuge:",
    },
}

SUPPORTED_LANGUAGES: frozenset[str] = frozenset(LOCALES)


def locale(language: str) -> dict:
    """String table for language; unknown languages get the default table."""
    return LOCALES.get(language, LOCALES[DEFAULT_LANGUAGE])
