"""Feed-forward network backend (requires PyTorch)"""

from typing import Optional

import numpy as np
import torch
import torch.nn as nn
import torch.optim as optim
from torch.utils.data import DataLoader, TensorDataset

from .config import ModelConfig
from .debug import DebugLogger
from .features import Dataset, N_FEATURES
from .training import FittedModel, StandardizationParams


class MLPRegressor(nn.Module):
    """Two ReLU hidden layers and a single linear output unit"""

    def __init__(self, input_size: int, config: ModelConfig):
        super(MLPRegressor, self).__init__()
        first, second = config.HIDDEN_UNITS
        self.layers = nn.Sequential(
            nn.Linear(input_size, first),
            nn.ReLU(),
            nn.Linear(first, second),
            nn.ReLU(),
            nn.Linear(second, 1),
        )

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        return self.layers(x)


class NetworkModel(FittedModel):
    kind = "network"

    def __init__(self, params: StandardizationParams, network: MLPRegressor, device: torch.device):
        super().__init__(params)
        self.network = network.eval()
        self.device = device

    def _predict_standardized(self, rows: np.ndarray) -> np.ndarray:
        with torch.no_grad():
            tensor = torch.as_tensor(rows, dtype=torch.float32, device=self.device)
            return self.network(tensor).squeeze(-1).cpu().numpy().astype(float)


class ModelTrainer:
    """Network training"""

    def __init__(self, config: ModelConfig):
        self.config = config
        self.device = torch.device("cuda" if torch.cuda.is_available() else "cpu")
        print(f"🖥️  Training device: {self.device}")

    def create_model(self, input_size: int = N_FEATURES) -> MLPRegressor:
        model = MLPRegressor(input_size, self.config).to(self.device)
        total_params = sum(p.numel() for p in model.parameters())
        print(f"🧠 Model created: {total_params:,} parameters")
        return model

    def train_model(self, model: MLPRegressor, x: np.ndarray, y: np.ndarray,
                    epochs: int, learning_rate: float,
                    generator: Optional[torch.Generator] = None) -> MLPRegressor:
        """Mean-squared-error fit with Adam over shuffled mini-batches"""
        x_tensor = torch.as_tensor(x, dtype=torch.float32, device=self.device)
        y_tensor = torch.as_tensor(y, dtype=torch.float32, device=self.device).reshape(-1, 1)

        dataloader = DataLoader(
            TensorDataset(x_tensor, y_tensor),
            batch_size=self.config.BATCH_SIZE,
            shuffle=True,
            generator=generator,
            num_workers=0
        )

        criterion = nn.MSELoss()
        optimizer = optim.Adam(model.parameters(), lr=learning_rate)

        model.train()
        for epoch in range(epochs):
            epoch_loss = 0.0
            batch_count = 0

            for batch_x, batch_y in dataloader:
                optimizer.zero_grad()
                loss = criterion(model(batch_x), batch_y)
                loss.backward()
                optimizer.step()

                epoch_loss += loss.item()
                batch_count += 1

            DebugLogger.log_training_progress(epoch, epochs, epoch_loss / batch_count, "MLP")

        model.eval()
        return model


def fit_network(dataset: Dataset, epochs: int, learning_rate: float,
                seed: Optional[int] = None, config: Optional[ModelConfig] = None) -> NetworkModel:
    config = config or ModelConfig()
    generator = None
    if seed is not None:
        torch.manual_seed(seed)
        generator = torch.Generator().manual_seed(seed)

    params = StandardizationParams.fit(dataset, config.STD_EPSILON)
    trainer = ModelTrainer(config)
    network = trainer.train_model(
        trainer.create_model(dataset.x.shape[1]),
        params.transform_rows(dataset.x),
        params.transform_labels(dataset.y),
        epochs, learning_rate, generator
    )

    model = NetworkModel(params, network, trainer.device)
    model._score(dataset)
    return model
