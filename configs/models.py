class ModelConfig:
    """Configuration class for topic models"""
    SUPPORTED_MODELS = {
        'lda': {
            'name': 'LDA',
            'backends': {'gibbs': 'tomotopy.LDAModel', 'vem': 'gensim.models.LdaModel'},
            'description': 'Latent Dirichlet Allocation (collapsed Gibbs sampling or variational EM)'
        },
        'stm': {
            'name': 'STM',
            'backends': {'default': 'tomotopy.DMRModel'},
            'description': 'Structural topic model with document covariates driving topic prevalence'
        },
        'ctm': {
            'name': 'CTM',
            'backends': {'default': 'tomotopy.CTModel'},
            'description': 'Correlated Topic Model with logistic-normal topic proportions'
        }
    }

    LDA_METHODS = ('gibbs', 'vem')

    @classmethod
    def list_available_models(cls):
        """Map each model key to its description."""
        return {key: cfg['description'] for key, cfg in cls.SUPPORTED_MODELS.items()}
