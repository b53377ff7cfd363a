import requests
import time
import random

BASE_URL = "http://127.0.0.1:8000"

# Guesses for structured challenges; the server grades them.
OPTION_GUESSES = ["A", "B", "C", "D"]

FREE_TEXT_ANSWERS = [
    "Both reports agree on the crowd size but the police estimate relies on a different method, "
    "so the sample behind each figure matters before drawing any conclusion about traffic impact.",
    "The evidence on employment is mixed: higher wages can reduce turnover and raise local spending, "
    "which supports demand, although small firms may respond by cutting hours instead of jobs.",
    "Publishing serves the public interest, but the harm to named individuals is real, so the editor "
    "should redact private details and weigh privacy against the duty to inform readers.",
]

# Reading feed with bias ratings from the labelling pipeline.
CONTENT = [
    {"id": "wire-001", "title": "Budget vote delayed", "source": "Wire Service", "bias_rating": 0.0},
    {"id": "left-014", "title": "Cuts hit the vulnerable", "source": "Progressive Daily", "bias_rating": -0.7},
    {"id": "right-022", "title": "Spending spree must end", "source": "Liberty Post", "bias_rating": 0.8},
    {"id": "center-031", "title": "What the budget means for you", "source": "Civic Times", "bias_rating": -0.1},
    {"id": "right-045", "title": "Taxpayers foot the bill", "source": "Heartland Herald", "bias_rating": 0.6},
]

USERS = {
    "alice": {"accuracy": 0.85, "reads": 5},
    "peter": {"accuracy": 0.55, "reads": 3},
    "marco": {"accuracy": 0.3, "reads": 1},
}


def check_connection():
    try:
        r = requests.get(BASE_URL)
        print(f"Server status: {r.status_code}")
        return r.status_code == 200
    except requests.RequestException as e:
        print(f"Server connection error: {e}")
        return False


def register_content():
    for item in CONTENT:
        r = requests.post(f"{BASE_URL}/content", json=item)
        if r.ok:
            print(f"Content {item['id']} registered.")
        else:
            print(f"Content registration failed for {item['id']}: {r.status_code}")


def _answer_for(challenge, accuracy):
    ctype = challenge["type"]
    if ctype == "bias_swap":
        options = list(challenge.get("options") or [])
        if not options:
            return ["loaded language"]
        keep = max(1, int(len(options) * accuracy))
        return random.sample(options, keep)
    if ctype in ("logic_puzzle", "data_literacy"):
        return random.choice(OPTION_GUESSES)
    return random.choice(FREE_TEXT_ANSWERS)


def simulate_day(user_id, profile):
    r = requests.get(f"{BASE_URL}/challenge/today", params={"user_id": user_id})
    if not r.ok:
        print(f"[{user_id}] No challenge today: {r.status_code}")
        return False
    challenge = r.json()
    print(f"[{user_id}] Today's challenge: {challenge['title']} ({challenge['type']}, {challenge['difficulty']})")

    estimate = challenge["estimated_time_minutes"] * 60
    spent = random.randint(estimate // 4, estimate * 2)
    resp = requests.post(
        f"{BASE_URL}/challenge/{challenge['id']}/submit",
        json={
            "user_id": user_id,
            "answer": _answer_for(challenge, profile["accuracy"]),
            "time_spent_seconds": spent,
        },
    )
    if not resp.ok:
        print(f" → Submit error: {resp.status_code}")
        return False
    result = resp.json()
    print(
        f" → correct={result['is_correct']} xp={result['xp_earned']} "
        f"streak={result['streak_info']['current_streak']}"
    )

    for item in random.sample(CONTENT, min(profile["reads"], len(CONTENT))):
        requests.post(f"{BASE_URL}/content/read", json={"user_id": user_id, "content_id": item["id"]})
        time.sleep(0.1)
    return True


def run_simulation():
    if not check_connection():
        return

    register_content()

    completed = 0
    for user, profile in USERS.items():
        if simulate_day(user, profile):
            completed += 1
        time.sleep(0.3)

    print(f"\nUsers simulated: {completed} of {len(USERS)}")

    for user in USERS:
        r = requests.get(f"{BASE_URL}/echo-score", params={"user_id": user, "mode": "save"})
        if r.ok:
            score = r.json()
            print(f"{user}: echo score {score['total_score']:.2f}")
        else:
            print(f"{user}: echo score unavailable ({r.status_code})")

    r = requests.get(f"{BASE_URL}/challenge/leaderboard", params={"timeframe": "daily"})
    if r.ok:
        print(f"Leaderboard entries: {len(r.json()['entries'])}")
    else:
        print("Failed to get leaderboard")


if __name__ == "__main__":
    run_simulation()
