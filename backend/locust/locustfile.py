"""
Load scenarios for the pickup games API.

  locust -f locustfile.py --tags race      # many players, one 10-slot game
  locust -f locustfile.py --tags browse    # active list (Redis cache on/off)
  locust -f locustfile.py --tags chat      # chat posts fanning out pushes
  locust -f locustfile.py --tags invalid   # bad input must be 4xx, never 5xx
  locust -f locustfile.py                  # everything, weighted like real use

Each simulated user takes a random X-Player-Id and creates its profile on start.
"""

import random
import string

from locust import HttpUser, between, events, tag, task

RACE_SLOTS = 10
SPORT_IDS = range(1, 10)

known_games: list[int] = []
race_game = {"id": None}


def _player_headers(client) -> dict:
    player_id = random.randint(100_000, 9_999_999)
    headers = {"X-Player-Id": str(player_id)}
    username = "lt_" + "".join(random.choices(string.ascii_lowercase + string.digits, k=10))
    resp = client.put("/api/v1/players/me", json={"username": username}, headers=headers)
    return headers if resp.status_code == 200 else {}


def _expect(resp, *codes):
    if resp.status_code in codes:
        resp.success()
    else:
        resp.failure(f"status {resp.status_code}, wanted one of {codes}")


@events.test_stop.add_listener
def report_race(environment, **kwargs):
    if race_game["id"]:
        print(
            f"\nRace game {race_game['id']}: check "
            f"SELECT COUNT(*) FROM game_participants WHERE game_id = {race_game['id']}; "
            f"it must not exceed {RACE_SLOTS}\n"
        )


class LastSlotRaceUser(HttpUser):
    """Every user hammers the join endpoint of the same game."""

    wait_time = between(0, 0.1)

    def on_start(self):
        self.headers = _player_headers(self.client)
        if self.headers and race_game["id"] is None:
            resp = self.client.post(
                "/api/v1/games/",
                json={"sport_id": 1, "min_players": 2, "max_players": RACE_SLOTS, "time_type": "now"},
                headers=self.headers,
            )
            if resp.status_code == 201:
                race_game["id"] = resp.json()["id"]

    @tag("race")
    @task
    def join_contested_game(self):
        if not (race_game["id"] and self.headers):
            return
        with self.client.post(
            f"/api/v1/games/{race_game['id']}/join",
            headers=self.headers,
            name="/api/v1/games/{id}/join [race]",
            catch_response=True,
        ) as resp:
            # 409 covers full, already joined and lost-the-retries
            _expect(resp, 200, 409)


class BrowseUser(HttpUser):
    """Read-heavy traffic. Run once with Redis and once without to compare."""

    wait_time = between(0.1, 0.5)

    @tag("browse")
    @task(8)
    def active_list(self):
        params = {"page": random.randint(1, 3), "page_size": 20}
        if random.random() < 0.3:
            params["sport_id"] = random.choice(SPORT_IDS)
        if random.random() < 0.2:
            params["skill_level"] = random.choice(["beginner", "average", "pro"])
        resp = self.client.get("/api/v1/games/", params=params, name="/api/v1/games/ [list]")
        if resp.status_code == 200:
            for game in resp.json().get("games", []):
                if game["id"] not in known_games:
                    known_games.append(game["id"])

    @tag("browse")
    @task(3)
    def game_detail(self):
        if known_games:
            self.client.get(f"/api/v1/games/{random.choice(known_games)}", name="/api/v1/games/{id}")

    @tag("browse")
    @task(1)
    def sports(self):
        self.client.get("/api/v1/sports/")


class ChatUser(HttpUser):
    """Joins a game, then talks in it."""

    wait_time = between(0.5, 2)

    def on_start(self):
        self.headers = _player_headers(self.client)
        self.game_id = None

    @tag("chat")
    @task
    def chat(self):
        if not self.headers:
            return
        if self.game_id is None:
            if not known_games:
                self.client.get("/api/v1/games/", name="/api/v1/games/ [list]")
                return
            game_id = random.choice(known_games)
            resp = self.client.post(f"/api/v1/games/{game_id}/join", headers=self.headers,
                                    name="/api/v1/games/{id}/join")
            if resp.status_code == 200:
                self.game_id = game_id
            return
        with self.client.post(
            f"/api/v1/games/{self.game_id}/messages",
            json={"body": random.choice(["on my way", "who has a ball?", "running late", "gg"])},
            headers=self.headers,
            name="/api/v1/games/{id}/messages",
            catch_response=True,
        ) as resp:
            # 404/403 when the game was swept or we were never on it
            _expect(resp, 201, 403, 404)


class InvalidInputUser(HttpUser):
    wait_time = between(0.5, 1.5)

    def on_start(self):
        self.headers = _player_headers(self.client)

    @tag("invalid")
    @task
    def unknown_game(self):
        with self.client.post("/api/v1/games/987654321/join", headers=self.headers,
                              name="/api/v1/games/{id}/join [unknown]", catch_response=True) as resp:
            _expect(resp, 404)

    @tag("invalid")
    @task
    def inverted_player_range(self):
        with self.client.post("/api/v1/games/", json={"sport_id": 1, "min_players": 8, "max_players": 4},
                              headers=self.headers, catch_response=True) as resp:
            _expect(resp, 400, 422)

    @tag("invalid")
    @task
    def not_json(self):
        with self.client.post("/api/v1/games/", data="{{{", headers=self.headers,
                              name="/api/v1/games/ [not json]", catch_response=True) as resp:
            _expect(resp, 400, 422)

    @tag("invalid")
    @task
    def anonymous_join(self):
        with self.client.post("/api/v1/games/1/join", name="/api/v1/games/{id}/join [anonymous]",
                              catch_response=True) as resp:
            _expect(resp, 401)


class MixedUser(HttpUser):
    """Mostly browsing, some roster churn, the occasional new game."""

    wait_time = between(1, 3)

    def on_start(self):
        self.headers = _player_headers(self.client)

    @task(40)
    def browse(self):
        resp = self.client.get("/api/v1/games/", name="/api/v1/games/ [list]")
        if resp.status_code == 200:
            known_games.extend(g["id"] for g in resp.json().get("games", []) if g["id"] not in known_games)

    @task(15)
    def view(self):
        if known_games:
            self.client.get(f"/api/v1/games/{random.choice(known_games)}", name="/api/v1/games/{id}")

    @task(8)
    def join(self):
        if known_games and self.headers:
            self.client.post(f"/api/v1/games/{random.choice(known_games)}/join",
                             headers=self.headers, name="/api/v1/games/{id}/join")

    @task(3)
    def leave(self):
        if known_games and self.headers:
            self.client.post(f"/api/v1/games/{random.choice(known_games)}/leave",
                             headers=self.headers, name="/api/v1/games/{id}/leave")

    @task(2)
    def post_game(self):
        if not self.headers:
            return
        low = random.randint(2, 6)
        resp = self.client.post(
            "/api/v1/games/",
            json={
                "sport_id": random.choice(SPORT_IDS),
                "min_players": low,
                "max_players": low + random.randint(0, 10),
                "time_type": "time_of_day",
                "time_of_day": random.choice(["after_dinner", "tomorrow_morning"]),
            },
            headers=self.headers,
        )
        if resp.status_code == 201:
            known_games.append(resp.json()["id"])
