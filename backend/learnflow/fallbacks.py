"""
Locally generated stand-ins for remote workflow output.

Every builder is a pure function of (subject, parameter, request fields): no
clock, no randomness, and constants are deep-copied so callers can mutate the
result freely.
"""

from __future__ import annotations

import copy
from typing import Any, Callable, Dict, List

from .tasks import TaskKind

PASS_PERCENTAGE = 80
DEFAULT_MAX_ATTEMPTS = 5

_SCORE_ANALYSIS = {"score": 0, "summary": "Assessment completed successfully!"}

_CAREER_OPTIONS: List[Dict[str, str]] = [
	{
		"ID": "1",
		"career": "Creative Explorer",
		"description": "Design, animation, and storytelling could be your world! You have a natural talent for creative expression and visual communication.",
	},
	{
		"ID": "2",
		"career": "Logical Leader",
		"description": "You're great with strategies - future entrepreneur or engineer? Your analytical thinking and problem-solving skills are exceptional.",
	},
	{
		"ID": "3",
		"career": "Science Detective",
		"description": "You love to explore and experiment - maybe a future scientist! Your curiosity and methodical approach to discovery are remarkable.",
	},
	{
		"ID": "4",
		"career": "Tech Innovator",
		"description": "Technology and innovation fascinate you! You have the potential to create the next big breakthrough in the digital world.",
	},
]

_GENERAL_QUESTIONS: List[Dict[str, Any]] = [
	{
		"question": "How do you prefer to learn new things?",
		"options": ["By watching videos", "By reading", "By doing hands-on activities", "By discussing with others"],
		"category": "Learning Style",
	},
	{
		"question": "What motivates you to learn?",
		"options": ["Getting good grades", "Understanding new concepts", "Solving problems", "Helping others"],
		"category": "Motivation",
	},
]

MAX_FALLBACK_QUESTIONS = 10


def _strings(value: Any) -> List[str]:
	if isinstance(value, str):
		return [value] if value.strip() else []
	if isinstance(value, list):
		return [str(v).strip() for v in value if v is not None and str(v).strip()]
	return []


def _profile(request: Dict[str, Any]) -> Dict[str, Any]:
	for key in ("studentProfile", "studentData", "profile"):
		value = request.get(key)
		if isinstance(value, dict):
			return value
	return request


def score_analysis(subject: str, parameter: str, request: Dict[str, Any]) -> Dict[str, Any]:
	return copy.deepcopy(_SCORE_ANALYSIS)


def career_options(subject: str, parameter: str, request: Dict[str, Any]) -> List[Dict[str, str]]:
	return copy.deepcopy(_CAREER_OPTIONS)


def career_details(subject: str, parameter: str, request: Dict[str, Any]) -> Dict[str, Any]:
	career = parameter or str(request.get("careerPath") or "").strip() or "Your Chosen Career"
	return {
		"career": career,
		"greeting": f"Great choice! Becoming a {career} is an exciting journey, and here is a plan to get you started.",
		"overview": [
			f"A {career} combines curiosity, practice and steady learning.",
			"Start with the fundamentals, then build projects that show what you can do.",
			"Mentors, clubs and online communities can speed up your progress.",
		],
		"timeRequired": "1 Year",
		"focusAreas": ["Core Concepts", "Hands-on Practice", "Communication", "Problem Solving"],
		"learningPath": [
			{
				"module": f"Module 1: Introduction to {career}",
				"description": f"Understand what a {career} does day to day and which skills matter most.",
				"submodules": [
					{"title": "Submodule 1: Exploring the Field", "description": "Learn the main roles and where they work.", "chapters": [{"title": "Chapter 1: What the Job Looks Like"}, {"title": "Chapter 2: Key Tools and Vocabulary"}]},
				],
			},
			{
				"module": "Module 2: Building Core Skills",
				"description": "Practice the essential skills through guided activities.",
				"submodules": [
					{"title": "Submodule 2: Guided Practice", "description": "Work through small exercises.", "chapters": [{"title": "Chapter 3: First Exercises"}, {"title": "Chapter 4: Learning From Mistakes"}]},
				],
			},
			{
				"module": "Module 3: Projects and Next Steps",
				"description": "Apply what you learned in a small project and plan what comes next.",
				"submodules": [
					{"title": "Submodule 3: Your First Project", "description": "Plan, build and present a project.", "chapters": [{"title": "Chapter 5: Planning"}, {"title": "Chapter 6: Presenting Your Work"}]},
				],
			},
		],
	}


def learning_path(subject: str, parameter: str, request: Dict[str, Any]) -> Dict[str, Any]:
	profile = _profile(request)
	skills = _strings(profile.get("skills"))[:3]
	interests = _strings(profile.get("interests"))[:2]
	goals = _strings(profile.get("careerGoals"))
	path_id = f"LP_FALLBACK_{subject}"
	milestones: List[Dict[str, Any]] = []

	def milestone(suffix: str, name: str, description: str, modules: List[str], minutes: int, prerequisites: List[str]) -> None:
		milestones.append({
			"milestoneId": f"{path_id}_{suffix}",
			"name": name,
			"description": description,
			"modules": modules,
			"estimatedTime": minutes,
			"prerequisites": prerequisites,
			"status": "available" if not milestones else "locked",
			"progress": 0,
		})

	if skills:
		milestone("M1", f"{skills[0]} Foundation", f"Build a strong foundation in {skills[0]}", [f"{skills[0]}_basic_1", f"{skills[0]}_basic_2", f"{skills[0]}_basic_3"], 120, [])
	if interests:
		milestone("M2", f"{interests[0]} Exploration", f"Explore your interest in {interests[0]}", [f"{interests[0]}_explore_1", f"{interests[0]}_explore_2"], 180, [f"{path_id}_M1"] if skills else [])
	if len(skills) > 1:
		milestone("M3", f"{skills[1]} Advanced", f"Advanced concepts in {skills[1]}", [f"{skills[1]}_advanced_1", f"{skills[1]}_advanced_2"], 240, [f"{path_id}_M1"])
	earlier = [m["milestoneId"] for m in milestones[:2]]
	milestone("M4", "Project Portfolio", "Apply your learning through hands-on projects", ["project_planning", "project_execution", "project_presentation"], 300, earlier)
	if goals:
		milestone("M5", "Career Preparation", f"Prepare for a future in {goals[0]}", ["career_research", "skill_mapping", "mentor_connect"], 180, [f"{path_id}_M4"])

	return {
		"pathId": path_id,
		"name": "Personalized Learning Path",
		"description": "A starter path built from your skills and interests",
		"category": "academic",
		"milestones": milestones,
		"totalModules": sum(len(m["modules"]) for m in milestones),
		"totalDuration": sum(m["estimatedTime"] for m in milestones),
		"totalXpPoints": len(milestones) * 100,
	}


def assessment_questions(subject: str, parameter: str, request: Dict[str, Any]) -> List[Dict[str, Any]]:
	profile = _profile(request)
	questions: List[Dict[str, Any]] = []

	def add(prefix: str, question: str, options: List[str], category: str) -> None:
		questions.append({
			"id": f"fallback_{prefix}_{len(questions) + 1}",
			"question": question,
			"options": list(options),
			"category": category,
			"points": 10,
			"timeLimit": 120,
			"type": "multiple-choice",
		})

	for skill in _strings(profile.get("skills"))[:3]:
		add("skill", f"How confident are you in {skill}?", ["Very confident", "Somewhat confident", "Not very confident", "Need to learn more"], "Skills Assessment")
	for interest in _strings(profile.get("interests"))[:3]:
		add("interest", f"What would you like to learn most about {interest}?", ["The basics", "Advanced concepts", "Practical applications", "Career opportunities"], "Interest Exploration")
	for goal in _strings(profile.get("careerGoals"))[:2]:
		add("career", f"What skills do you think are most important for a career in {goal}?", ["Technical skills", "Communication skills", "Problem-solving", "Creativity"], "Career Planning")
	for general in _GENERAL_QUESTIONS:
		add("general", general["question"], general["options"], general["category"])
	return questions[:MAX_FALLBACK_QUESTIONS]


def content_transcript(subject: str, parameter: str, request: Dict[str, Any]) -> Dict[str, Any]:
	return {
		"moduleId": parameter,
		"transcript": "",
		"segments": [],
		"totalSegments": 0,
		"language": "en",
		"available": False,
	}


def module_assessment(subject: str, parameter: str, request: Dict[str, Any]) -> Dict[str, Any]:
	answers = request.get("answers")
	values = list(answers.values()) if isinstance(answers, dict) else (answers if isinstance(answers, list) else [])
	total = len(values)
	correct = sum(1 for answer in values if answer is not None and "correct" in str(answer).lower())
	try:
		attempt = int(request.get("attemptNumber") or 1)
	except (TypeError, ValueError):
		attempt = 1
	try:
		max_attempts = int(request.get("maxAttempts") or DEFAULT_MAX_ATTEMPTS)
	except (TypeError, ValueError):
		max_attempts = DEFAULT_MAX_ATTEMPTS
	base = (correct / total) * 100 if total else 0
	bonus = max(0, (max_attempts - attempt) * 5)
	percentage = round(min(100, base + bonus))
	passed = percentage >= PASS_PERCENTAGE
	if passed:
		feedback = "Excellent work! You have successfully completed this module."
	elif attempt < max_attempts:
		feedback = "Good effort! Review the material and try again."
	else:
		feedback = "You've reached the maximum attempts. Consider reviewing the module content."
	return {
		"score": percentage,
		"percentage": percentage,
		"passed": passed,
		"feedback": feedback,
		"correctAnswers": correct,
		"totalQuestions": total,
		"attemptNumber": attempt,
	}


def chat_answer(subject: str, parameter: str, request: Dict[str, Any]) -> Dict[str, Any]:
	student = request.get("studentData") if isinstance(request.get("studentData"), dict) else {}
	name = str(student.get("name") or request.get("name") or "").strip() or "there"
	query = str(request.get("query") or request.get("message") or "").lower()
	if "help" in query or "assist" in query:
		text = f"Hi {name}! I'm here to help you with your learning journey. I can assist you with understanding your modules, tracking your progress, and answering questions about your courses."
	elif "progress" in query or "score" in query:
		text = f"{name}, you can check your progress in the Progress tab of your dashboard. Keep up the great work on your learning journey!"
	elif "module" in query or "course" in query:
		text = f"Great question about modules, {name}! You can find your recommended modules in the Learning Path section. Each module is tailored to your learning style and interests."
	elif "grade" in query or "assessment" in query:
		text = f"{name}, your assessments and grades are available in your dashboard. Remember, every assessment is a step forward in your learning journey!"
	else:
		text = f"Hello {name}! I'm your AI learning assistant. While I'm working in offline mode right now, I'm still here to help! You can ask me about your learning progress, modules, or any questions about your educational journey."
	return {"response": text}


FallbackBuilder = Callable[[str, str, Dict[str, Any]], Any]

FALLBACKS: Dict[TaskKind, FallbackBuilder] = {
	TaskKind.SCORE_ANALYSIS: score_analysis,
	TaskKind.CAREER_OPTIONS: career_options,
	TaskKind.CAREER_DETAILS: career_details,
	TaskKind.LEARNING_PATH: learning_path,
	TaskKind.ASSESSMENT_QUESTIONS: assessment_questions,
	TaskKind.CONTENT_TRANSCRIPT: content_transcript,
	TaskKind.MODULE_ASSESSMENT: module_assessment,
	TaskKind.CHAT_ANSWER: chat_answer,
}
