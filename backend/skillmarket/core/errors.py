from __future__ import annotations


class SkillMarketError(RuntimeError):
    pass


class UnsupportedSkill(SkillMarketError):
    def __init__(self, skills: list[str] | None = None):
        self.skills = list(skills or [])
        requested = ", ".join(self.skills) or "none"
        super().__init__(f"Unsupported skill type (requested: {requested})")


class NoOracleData(SkillMarketError):
    pass


class RateLimited(SkillMarketError):
    def __init__(self, service: str, retry_after_seconds: float):
        self.service = service
        self.retry_after_seconds = max(0.0, float(retry_after_seconds))
        super().__init__(
            f"Rate limited for {service}, retry in {self.retry_after_seconds:.1f}s"
        )


class OracleReadFailure(SkillMarketError):
    pass


class GenerativeSynthesisFailure(SkillMarketError):
    pass
