"""documents/ -- Schema-free document persistence shared by every collection."""
