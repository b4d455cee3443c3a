from config.config import FEATURE_DIM, BanditConfig, FeatureConfig, ModelStoreConfig

__all__ = ['FEATURE_DIM', 'BanditConfig', 'FeatureConfig', 'ModelStoreConfig']
