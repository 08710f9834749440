import torch
import torch.nn as nn
import torch.nn.functional as F

import numpy as np


def _init_weights(model: nn.Module) -> None:
    # Zero start keeps L-BFGS deterministic for a given row order
    if isinstance(model, nn.Linear):
        nn.init.zeros_(model.weight)
        if model.bias is not None:
            nn.init.zeros_(model.bias)


class MaxEntClassifier(nn.Module):
    """Multinomial logistic regression over frozen embeddings, fit with L-BFGS.

    The objective is the summed cross entropy of the training rows plus
    `l1_weight * |W| + l2_weight / 2 * ||W||^2`. The L1 term is a plain subgradient,
    so it shrinks weights without driving them exactly to zero. With
    `normalize_features`, every feature is divided by its largest absolute training
    value (features that are always zero are left alone).
    """

    def __init__(self, embedding_size : int, num_classes : int, train_configuration : dict, device = torch.device("cpu")):
        super(MaxEntClassifier, self).__init__()
        assert num_classes > 0, "num_classes must be positive"
        self.embedding_size = embedding_size
        self.num_classes = num_classes
        self.max_iterations = train_configuration["max_iterations"]
        self.history_size = train_configuration["history_size"]
        self.tolerance = train_configuration["tolerance"]
        self.l1_weight = train_configuration["l1_weight"]
        self.l2_weight = train_configuration["l2_weight"]
        self.normalize_features = train_configuration["normalize_features"]
        self.device = device

        self.linear = nn.Linear(embedding_size, num_classes).to(self.device)
        self.register_buffer("feature_scale", torch.ones(embedding_size, device=self.device))
        _init_weights(self.linear)

    def forward(self, embeddings: torch.Tensor) -> torch.Tensor:
        return self.linear(embeddings * self.feature_scale)

    def _as_tensor(self, embeddings : np.ndarray) -> torch.Tensor:
        x = torch.as_tensor(np.asarray(embeddings), dtype=torch.float32, device=self.device)
        assert x.dim() == 2 and x.shape[1] == self.embedding_size, \
            f"Expected embeddings of shape (N, {self.embedding_size}), got {tuple(x.shape)}"
        return x

    def _objective(self, x : torch.Tensor, y : torch.Tensor) -> torch.Tensor:
        loss = F.cross_entropy(self.forward(x), y, reduction="sum")
        weight = self.linear.weight
        return loss + self.l1_weight * weight.abs().sum() + 0.5 * self.l2_weight * weight.pow(2).sum()

    def fit(self, embeddings : np.ndarray, label_keys : np.ndarray) -> float:
        x = self._as_tensor(embeddings)
        y = torch.as_tensor(np.asarray(label_keys), dtype=torch.int64, device=self.device)
        assert len(x) == len(y), f"Got {len(x)} embeddings but {len(y)} labels"
        assert len(y) > 0, "Cannot fit without training rows"
        assert int(y.min()) >= 0 and int(y.max()) < self.num_classes, "label keys out of range"

        with torch.no_grad():
            if self.normalize_features:
                max_abs = x.abs().max(dim=0).values
                max_abs[max_abs == 0] = 1.0
                self.feature_scale.copy_(1.0 / max_abs)
            else:
                self.feature_scale.fill_(1.0)
        _init_weights(self.linear)

        self.train()
        optimizer = torch.optim.LBFGS(self.linear.parameters(),
                                      lr=1.0,
                                      max_iter=self.max_iterations,
                                      history_size=self.history_size,
                                      tolerance_grad=self.tolerance,
                                      tolerance_change=self.tolerance,
                                      line_search_fn="strong_wolfe")

        def closure():
            optimizer.zero_grad()
            loss = self._objective(x, y)
            loss.backward()
            return loss

        optimizer.step(closure)
        self.eval()
        with torch.no_grad():
            return self._objective(x, y).item()

    def predict_proba(self, embeddings : np.ndarray) -> np.ndarray:
        x = self._as_tensor(embeddings)
        self.eval()
        with torch.no_grad():
            return F.softmax(self.forward(x), dim=1).cpu().numpy()

    def predict(self, embeddings : np.ndarray) -> np.ndarray:
        return np.argmax(self.predict_proba(embeddings), axis=1)
