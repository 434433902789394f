from dataclasses import dataclass


@dataclass
class RewardStrategy:
    movement: float = -1.0  # every move
    getting_further: float = -6.0  # extra, when the move increased the distance to the goal
    goal: float = 100.0
    same_position: float = -4.0  # extra, when the move left the agent where it was
    normalizing_factor: float = 1.0


def calculate_reward(agent, goal, strategy: RewardStrategy) -> float:
    """Score the agent's most recent move.

    Reaching the goal returns ``strategy.goal`` as-is. Otherwise the movement
    penalty is summed with the idle and getting-further penalties that apply,
    and the sum is scaled by ``strategy.normalizing_factor``.
    """
    if agent.has_reached_goal(goal):
        return strategy.goal

    reward = strategy.movement

    if agent.is_idle():
        reward += strategy.same_position

    past = agent.get_past_position(1)
    if past is not None and agent.distance(goal.position) > goal.distance(past):
        reward += strategy.getting_further

    return reward * strategy.normalizing_factor
