# prompts.py
"""Prompt templates and Gemini response schemas for the learning operations."""

SYLLABUS_SCHEMA = {
    'type': 'OBJECT',
    'properties': {
        'title': {'type': 'STRING'},
        'syllabus': {'type': 'ARRAY', 'items': {'type': 'STRING'}},
    },
}

SCOPING_SCHEMA = {
    'type': 'OBJECT',
    'properties': {
        'complexity': {'type': 'STRING', 'enum': ['Beginner', 'Intermediate', 'Expert']},
        'thresholdConcepts': {'type': 'ARRAY', 'items': {'type': 'STRING'}},
        'goals': {'type': 'ARRAY', 'items': {'type': 'STRING'}},
    },
}

SPRINT_SCHEMA = {
    'type': 'OBJECT',
    'properties': {
        'id': {'type': 'STRING'},
        'title': {'type': 'STRING'},
        'duration': {'type': 'NUMBER'},
        'complexity': {'type': 'STRING'},
        'motivatingStatement': {'type': 'STRING'},
        'smartGoals': {'type': 'ARRAY', 'items': {'type': 'STRING'}},
        'thresholdConcepts': {'type': 'ARRAY', 'items': {'type': 'STRING'}},
        'sections': {
            'type': 'ARRAY',
            'items': {
                'type': 'OBJECT',
                'properties': {
                    'title': {'type': 'STRING'},
                    'content': {'type': 'STRING'},
                    'imageKeyword': {'type': 'STRING'},
                    'interactionType': {'type': 'STRING', 'enum': ['READ', 'REFLECTION']},
                },
            },
        },
        'wordPairs': {
            'type': 'ARRAY',
            'items': {
                'type': 'OBJECT',
                'properties': {
                    'a': {'type': 'STRING'},
                    'b': {'type': 'STRING'},
                },
            },
        },
        'quiz': {
            'type': 'ARRAY',
            'items': {
                'type': 'OBJECT',
                'properties': {
                    'id': {'type': 'STRING'},
                    'question': {'type': 'STRING'},
                    'options': {'type': 'ARRAY', 'items': {'type': 'STRING'}},
                    'correctIndex': {'type': 'NUMBER'},
                    'explanation': {'type': 'STRING'},
                },
            },
        },
    },
}


def title_prompt(url):
    return f"""
    I have this URL: "{url}".
    I need the actual human-readable Title of the page or video.
    Use Google Search to find it.

    Rules:
    1. Return ONLY the title string.
    2. Do NOT return the URL.
    3. Do NOT add quotes.
    4. If it's a YouTube video, return the video title.
    5. If you absolutely cannot find it, return "External Resource".
    """


def syllabus_prompt(topic, complexity=None):
    return f"""
    Act as an Accelerated Learning Architect.
    Design a 7-Session Mastery Program for the topic: "{topic}".
    Complexity Level: {complexity or 'Intermediate'}.

    CRITICAL: If the input topic is a URL (like YouTube, Medium, etc.), use the Google Search tool to find the ACTUAL title and context of that content.

    Extract a concise, meaningful, and punchy "Program Title" (2-6 words) based on the actual content found. Do not use the URL as the title.

    The program must be a logical progression:
    Session 1: Foundations & Core Principles
    Session 2-3: Mechanisms & Deep Dives
    Session 4-5: Applications & Synthesis
    Session 6: Advanced/Edge Cases
    Session 7: Mastery & Integration

    Return ONLY a JSON object.
    Schema: {{ title: string, syllabus: string[] }}
    """


def scoping_prompt(topic, prefs, session_index, total_sessions, program_topic):
    prefs = prefs or {}
    context = f"""
    User Profile: {prefs.get('learningStyle', '')}, {prefs.get('complexityPreference', '')}.
    Program Context: This is Session {int(session_index or 0) + 1} of {total_sessions} in a program about "{program_topic}".
    Current Session Focus: "{topic}".
    """
    return f"""
    Act as an Accelerated Learning Curriculum Designer.
    Analyze the specific session topic "{topic}" within the broader context of "{program_topic}".

    {context}

    Return a JSON object with:
    1. "complexity": The assessed complexity level. MUST be one of: "Beginner", "Intermediate", "Expert".
    2. "thresholdConcepts": 8-10 key terms/jargon specific to THIS session.
    3. "goals": A list of 5 specific learning outcomes for THIS session.

    Schema: {{ complexity: string, thresholdConcepts: string[], goals: string[] }}
    """


def goal_context(goals):
    """Render the selected goals as ``- [priority] text`` lines."""
    selected = [g for g in (goals or []) if isinstance(g, dict) and g.get('isSelected')]
    return '\n'.join(f"- [{g.get('priority', 'Useful')}] {g.get('text', '')}" for g in selected)


def sprint_prompt(topic, priming, scoping_data, prefs):
    priming = priming or {}
    scoping_data = scoping_data or {}
    prefs = prefs or {}
    concepts = ', '.join(scoping_data.get('thresholdConcepts') or [])
    return f"""
    Create a "High-Velocity Learning Unit" for "{topic}".

    User Priming Context:
    - Relevance: {priming.get('relevance', '')}
    - Context: {priming.get('relation', '')}
    - Expectations: {priming.get('scope', '')}

    Agreed Learning Goals (Prioritized):
    {goal_context(scoping_data.get('goals'))}

    User Profile: {prefs.get('complexityPreference', '')}, {prefs.get('learningStyle', '')}.

    Protocol:
    1. Title: Create a clean, engaging headline for this unit (do NOT use a URL).
    2. Motivating Statement: Directly address the user's "Relevance" answer.
    3. Sections: Create 4 learning sections. Content must be tailored to the prioritized goals.
       - For "Critical" goals, go deep.
       - For "Interesting" goals, add trivia or lateral connections.
    4. **CRITICAL**: Ensure the "thresholdConcepts" ({concepts}) appear naturally in the text.
    5. Quiz: 2 questions based on the content.
    6. Word Pairs: 8 pairs for memory game (Concept + Short Definition).

    Output JSON matching LearningUnit schema. Fixed duration: 10 minutes.
    """
