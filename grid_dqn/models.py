import copy
from typing import Dict

import numpy as np
import torch
import torch.nn as nn
import torch.nn.functional as F

N_FEATURES = 4  # agent.x, agent.y, goal.x, goal.y
N_ACTIONS = 4  # up, down, left, right


class QNet(nn.Module):
    def __init__(self, hidden_layers: int = 5, units: int = 128, dropout: float = 0.2,
                 leaky_relu_alpha: float = 0.01):
        super().__init__()
        layers = [nn.Linear(N_FEATURES, units), nn.LeakyReLU(leaky_relu_alpha)]
        for _ in range(hidden_layers):
            layers += [nn.Linear(units, units), nn.LeakyReLU(leaky_relu_alpha), nn.Dropout(dropout)]
        self.body = nn.Sequential(*layers)
        # Linear head: Q-values are unbounded (goal reward is +100)
        self.head = nn.Linear(units, N_ACTIONS)

    def forward(self, x):
        return self.head(self.body(x))


class QApproximator:
    """Function approximator used by the training loop.

    The loop only ever calls predict / fit / get_weights / set_weights; the
    weights are handed back and forth as an opaque snapshot.
    """

    def __init__(self, net: QNet, cfg, device):
        self.net = net
        self.device = device
        self.max_grad_norm = cfg.max_grad_norm
        self.optimizer = torch.optim.Adam(self.net.parameters(), lr=cfg.lr, eps=1e-5)
        self.fit_calls = 0

    def predict(self, features) -> np.ndarray:
        """Q-values for a single [agent.x, agent.y, goal.x, goal.y] vector."""
        x = torch.as_tensor(np.asarray(features, dtype=np.float32)).view(1, N_FEATURES).to(self.device)
        self.net.eval()
        with torch.no_grad():
            q = self.net(x)
        return q.squeeze(0).cpu().numpy()

    def fit(self, features, targets) -> float:
        s = torch.as_tensor(np.asarray(features, dtype=np.float32)).to(self.device)
        t = torch.as_tensor(np.asarray(targets, dtype=np.float32)).to(self.device)
        if s.dim() != 2 or s.shape[1] != N_FEATURES or t.shape != (s.shape[0], N_ACTIONS):
            raise ValueError(f"fit() expects features [B, {N_FEATURES}] and targets [B, {N_ACTIONS}], "
                             f"got {tuple(s.shape)} and {tuple(t.shape)}")

        self.net.train()
        self.optimizer.zero_grad(set_to_none=True)
        loss = F.smooth_l1_loss(self.net(s), t)
        loss.backward()
        torch.nn.utils.clip_grad_norm_(self.net.parameters(), self.max_grad_norm)
        self.optimizer.step()
        self.fit_calls += 1
        return float(loss.item())

    def get_weights(self) -> Dict[str, torch.Tensor]:
        return copy.deepcopy({k: v.detach() for k, v in self.net.state_dict().items()})

    def set_weights(self, weights: Dict[str, torch.Tensor]):
        self.net.load_state_dict(weights)


def init_model(cfg, device) -> QApproximator:
    net = QNet(cfg.hidden_layers, cfg.units, cfg.dropout, cfg.leaky_relu_alpha).to(device)
    return QApproximator(net, cfg, device)
